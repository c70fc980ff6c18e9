"""Idempotency service for replaying responses to retried requests."""

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ProblemDetailsException
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    # Timestamp columns are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class IdempotencyMismatchError(ProblemDetailsException):
    """Exception when idempotency key is reused with different request body."""

    def __init__(self, idempotency_key: str, operation: str):
        super().__init__(
            status_code=422,
            title="Idempotency Key Mismatch",
            detail=f"Idempotency key '{idempotency_key}' was already used for '{operation}' with a different request body",
            type_uri="https://example.com/problems/idempotency-key-mismatch",
            extensions={
                "code": "IDEMPOTENCY_KEY_MISMATCH",
                "retryable": False,
                "idempotency_key": idempotency_key,
                "operation": operation,
            },
        )


class IdempotencyInProgressError(ProblemDetailsException):
    """Exception when a request with the same key is still being processed."""

    def __init__(self, idempotency_key: str, operation: str):
        super().__init__(
            status_code=409,
            title="Request In Progress",
            detail=f"A request with idempotency key '{idempotency_key}' for '{operation}' is still being processed",
            type_uri="https://example.com/problems/idempotent-request-in-progress",
            extensions={
                "code": "IDEMPOTENT_REQUEST_IN_PROGRESS",
                "retryable": True,
                "idempotency_key": idempotency_key,
                "operation": operation,
            },
        )


class IdempotencyService:
    """
    Service for handling idempotent operations.

    A key is claimed by inserting a pending record before the operation
    runs; the unique constraint on (key, operation, caller) lets exactly one
    request win. The winner later completes the record with its response,
    which every retry then replays.
    """

    def __init__(self, db: AsyncSession, ttl_seconds: int | None = None):
        self.db = db
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.idempotency_ttl_seconds

    @staticmethod
    def compute_request_hash(request_body: dict[str, Any]) -> str:
        """SHA-256 of the body serialized with sorted keys."""
        normalized = json.dumps(request_body, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    @staticmethod
    def _key_filter(idempotency_key: str, operation: str, principal_id: str):
        return and_(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.operation == operation,
            IdempotencyRecord.principal_id == principal_id,
        )

    async def claim(
        self,
        idempotency_key: str,
        operation: str,
        principal_id: str,
        request_body: dict[str, Any],
    ) -> tuple[int, dict[str, Any]] | None:
        """
        Claim a key for this request, or return the response stored under it.

        Returns:
            None when this request now owns the key and must run the
            operation; otherwise the stored ``(status_code, body)``

        Raises:
            IdempotencyMismatchError: If the key was used with a different body
            IdempotencyInProgressError: If another request holds the key
        """
        request_hash = self.compute_request_hash(request_body)
        key_filter = self._key_filter(idempotency_key, operation, principal_id)

        try:
            # An expired record would otherwise block the key forever
            await self.db.execute(
                delete(IdempotencyRecord).where(key_filter, IdempotencyRecord.expires_at <= _utcnow())
            )
            self.db.add(IdempotencyRecord(
                idempotency_key=idempotency_key,
                operation=operation,
                principal_id=principal_id,
                request_body_hash=request_hash,
                expires_at=_utcnow() + timedelta(seconds=self.ttl_seconds),
            ))
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
        else:
            logger.info(
                "Idempotency key claimed",
                extra={"idempotency_key": idempotency_key, "operation": operation}
            )
            return None

        stmt = (
            select(IdempotencyRecord)
            .where(key_filter)
            .execution_options(populate_existing=True)
        )
        existing_record = (await self.db.execute(stmt)).scalar_one_or_none()

        if existing_record is not None and existing_record.request_body_hash != request_hash:
            logger.warning(
                "Idempotency key mismatch",
                extra={
                    "idempotency_key": idempotency_key,
                    "operation": operation,
                    "existing_hash": existing_record.request_body_hash[:8],
                    "new_hash": request_hash[:8]
                }
            )
            raise IdempotencyMismatchError(idempotency_key, operation)

        if existing_record is None or existing_record.response_status_code is None:
            logger.info(
                "Idempotency key held by another request",
                extra={"idempotency_key": idempotency_key, "operation": operation}
            )
            raise IdempotencyInProgressError(idempotency_key, operation)

        logger.info(
            "Returning cached idempotent response",
            extra={
                "idempotency_key": idempotency_key,
                "operation": operation,
                "status_code": existing_record.response_status_code
            }
        )
        return existing_record.response_status_code, json.loads(existing_record.response_body)

    async def complete(
        self,
        idempotency_key: str,
        operation: str,
        principal_id: str,
        status_code: int,
        response_body: dict[str, Any],
    ) -> None:
        """Store the response on a claimed key so a retry replays it."""
        await self.db.execute(
            update(IdempotencyRecord)
            .where(
                self._key_filter(idempotency_key, operation, principal_id),
                IdempotencyRecord.response_status_code.is_(None),
            )
            .values(
                response_status_code=status_code,
                response_body=json.dumps(response_body, sort_keys=True, separators=(",", ":"), default=str),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def release(self, idempotency_key: str, operation: str, principal_id: str) -> None:
        """Give up a claim whose operation failed unexpectedly, so a retry can run."""
        await self.db.execute(
            delete(IdempotencyRecord)
            .where(
                self._key_filter(idempotency_key, operation, principal_id),
                IdempotencyRecord.response_status_code.is_(None),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(
            "Idempotency key released",
            extra={"idempotency_key": idempotency_key, "operation": operation}
        )
