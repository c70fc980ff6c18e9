"""User model definition."""

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class User(Base):
    """Local projection of an identity-provider account, keyed by its opaque id."""

    __tablename__ = "users"

    # Opaque id issued by the identity provider (token subject)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Role flag is granted locally; roles mirror the latest token. Both feed the admin policy
    role: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(id) > 0", name="ck_user_id_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<User(id='{self.id}', email='{self.email}', role={self.role}, roles={self.roles})>"
