"""Pydantic schemas for request/response validation."""

from .attendance import *  # noqa: F403
from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .notification import *  # noqa: F403
from .schedule import *  # noqa: F403
from .trip import *  # noqa: F403
from .vendor import *  # noqa: F403
