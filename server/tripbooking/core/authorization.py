"""Single administrator policy shared by every staff-only operation and the notification fanout."""

from typing import Iterable, Optional, Protocol

from .config import settings

ADMIN_ROLE = "admin"


class RoleClaims(Protocol):
    """Anything carrying the identity attributes the admin policy looks at."""

    email: Optional[str]
    role: Optional[str]
    roles: Optional[Iterable[str]]


def is_admin(user: RoleClaims, fallback_admin_email: Optional[str] = None) -> bool:
    """
    Return True when the account holds administrator rights.

    An account is an administrator when its role flag is ``admin``, when
    ``admin`` appears in its roles collection, or when its email matches the
    configured fallback administrator email.
    """
    if user is None:
        return False

    if (user.role or "").lower() == ADMIN_ROLE:
        return True

    if any((role or "").lower() == ADMIN_ROLE for role in (user.roles or ())):
        return True

    fallback = fallback_admin_email if fallback_admin_email is not None else settings.fallback_admin_email
    return bool(fallback and user.email and user.email.strip().lower() == fallback.strip().lower())
