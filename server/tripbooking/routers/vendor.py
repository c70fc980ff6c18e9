"""Vendor application router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import CurrentPrincipal, DatabaseSession
from ..models.user import User
from ..schemas.vendor import VendorApplication, VendorApplicationResult, VendorApplyRequest
from ..services.vendor_service import VendorService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/vendor", tags=["vendor"])


@router.post("/apply", response_model=VendorApplicationResult)
async def apply_as_vendor(
    request: VendorApplyRequest,
    db: AsyncSession = DatabaseSession,
    principal: User = CurrentPrincipal,
) -> JSONResponse:
    """Submit a vendor application; every administrator is notified."""
    outcome = await VendorService(db).apply(request, principal)
    application = outcome.application
    response_data = VendorApplicationResult(
        application=VendorApplication(
            id=str(application.id),
            business_name=application.business_name,
            contact_email=application.contact_email,
            description=application.description,
            status=application.status,
            created_at=application.created_at,
        ),
        warnings=outcome.warnings,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
