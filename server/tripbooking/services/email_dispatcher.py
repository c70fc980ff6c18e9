"""Client for the external booking confirmation email function."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    """Outcome reported by the email function."""

    success: bool
    message: str


@dataclass(frozen=True)
class BookingSummary:
    """Everything the email function needs to render a confirmation with its QR code."""

    booking_id: str
    trip_name: str
    destination: str
    start_date: Optional[date]
    end_date: Optional[date]
    total_amount: int
    travelers: list[dict[str, Any]] = field(default_factory=list)

    @property
    def date_range(self) -> str:
        if self.start_date is None:
            return ""
        if self.end_date is None or self.end_date == self.start_date:
            return self.start_date.strftime("%d %b %Y")
        return f"{self.start_date.strftime('%d %b %Y')} - {self.end_date.strftime('%d %b %Y')}"

    def to_payload(self) -> dict[str, Any]:
        return {
            "bookingId": self.booking_id,
            "tripName": self.trip_name,
            "destination": self.destination,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "dateRange": self.date_range,
            "travelers": [
                {
                    "name": traveler.get("name"),
                    "age": traveler.get("age"),
                    "gender": traveler.get("gender"),
                }
                for traveler in self.travelers
            ],
            "totalAmount": self.total_amount,
        }


class EmailDispatcher:
    """Interface of the confirmation email sink. Implementations never raise."""

    async def send(self, recipient_email: str, summary: BookingSummary) -> DispatchResult:
        raise NotImplementedError


class HttpEmailDispatcher(EmailDispatcher):
    """Posts ``{recipientEmail, bookingData}`` to the configured email function."""

    def __init__(
        self,
        url: Optional[str],
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, recipient_email: str, summary: BookingSummary) -> DispatchResult:
        if not self.url:
            return DispatchResult(success=False, message="Email dispatcher is not configured")

        payload = {"recipientEmail": recipient_email, "bookingData": summary.to_payload()}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.warning(
                "Confirmation email dispatch failed",
                extra={"booking_id": summary.booking_id, "error": str(e)}
            )
            return DispatchResult(success=False, message=f"Email dispatch failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            return DispatchResult(
                success=False,
                message=message or f"Email function returned HTTP {response.status_code}",
            )

        if not isinstance(body, dict):
            return DispatchResult(success=False, message="Email function returned an unexpected body")

        return DispatchResult(
            success=bool(body.get("success")),
            message=str(body.get("message") or ""),
        )
