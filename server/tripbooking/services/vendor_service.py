"""Vendor application service."""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.observability import metrics_collector
from ..models.user import User
from ..models.vendor import VendorApplication
from ..schemas.vendor import VendorApplyRequest
from .notification_service import NotificationService, new_vendor_application_event

logger = logging.getLogger(__name__)


@dataclass
class VendorApplicationOutcome:
    application: VendorApplication
    warnings: list[str] = field(default_factory=list)


class VendorService:
    """Service for vendor applications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def apply(self, request: VendorApplyRequest, applicant: User) -> VendorApplicationOutcome:
        """Store a pending application and tell every administrator about it."""
        application = VendorApplication(
            user_id=applicant.id,
            business_name=request.business_name.strip(),
            contact_email=request.contact_email.strip(),
            description=request.description,
            status="pending",
        )
        self.db.add(application)
        await self.db.commit()
        await self.db.refresh(application)
        application_id = application.id

        logger.info(
            "Vendor application submitted",
            extra={"application_id": str(application_id), "user_id": applicant.id}
        )

        outcome = VendorApplicationOutcome(application=application)
        try:
            fanout = await NotificationService(self.db).fan_out(new_vendor_application_event(application))
            outcome.warnings.extend(fanout.warnings)
        except Exception as e:
            metrics_collector.record_side_effect_failure("notification")
            logger.error(
                "Vendor application fanout failed",
                extra={"application_id": str(application_id), "error": str(e)},
                exc_info=True
            )
            outcome.warnings.append("Admin notifications could not be sent")

        if outcome.warnings:
            await self.db.refresh(application)
        return outcome
