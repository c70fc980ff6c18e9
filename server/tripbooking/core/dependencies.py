"""FastAPI dependencies for authentication, authorization and collaborators."""

from datetime import datetime, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from ..services.email_dispatcher import EmailDispatcher, HttpEmailDispatcher
from ..services.user_service import UserService
from .authorization import is_admin
from .config import settings
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        dict: Claims of the validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise AuthenticationError(f"Token validation failed: {str(e)}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Invalid token payload")

    exp = payload.get("exp")
    if exp and datetime.now(timezone.utc).timestamp() > exp:
        raise AuthenticationError("Token has expired")

    return {
        "user_id": str(user_id),
        "email": payload.get("email"),
        "full_name": payload.get("name"),
        "roles": payload.get("roles", []),
    }


async def get_principal(
    claims: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the authenticated caller to its local account record."""
    return await UserService(db).sync_from_claims(claims)


async def require_staff(principal: User = Depends(get_principal)) -> User:
    """Allow the request only for administrators."""
    if not is_admin(principal):
        raise AuthorizationError(
            detail="Only staff can perform this operation",
            required_permissions=["admin"],
        )
    return principal


def get_email_dispatcher() -> EmailDispatcher:
    """Confirmation email collaborator; overridden in tests."""
    return HttpEmailDispatcher(
        url=settings.email_dispatcher_url,
        timeout_seconds=settings.email_dispatcher_timeout_seconds,
    )


# Shared dependency markers
DatabaseSession = Depends(get_db)
CurrentPrincipal = Depends(get_principal)
StaffPrincipal = Depends(require_staff)
EmailDispatcherDependency = Depends(get_email_dispatcher)
