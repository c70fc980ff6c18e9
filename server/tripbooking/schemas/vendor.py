"""Vendor application Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from .common import WithWarnings


class VendorApplyRequest(BaseModel):
    """Request schema for applying as a vendor."""

    business_name: str = Field(..., min_length=1, max_length=255, description="Business name")
    contact_email: str = Field(..., min_length=3, max_length=255, description="Business contact email")
    description: str | None = Field(None, max_length=5000, description="What the business offers")


class VendorApplication(BaseModel):
    """Vendor application response schema."""

    id: str
    business_name: str
    contact_email: str
    description: str | None = None
    status: str
    created_at: datetime


class VendorApplicationResult(WithWarnings):
    """Application plus any notification failures."""

    application: VendorApplication
