"""Vendor application model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class VendorApplication(Base):
    """Request from a user to list trips as a vendor; reviewed by staff."""

    __tablename__ = "vendor_applications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(business_name) > 0", name="ck_vendor_business_name_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<VendorApplication(id={self.id}, business_name='{self.business_name}', "
            f"status={self.status})>"
        )
