"""User service keeping local accounts in step with identity-provider claims."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.user import User

logger = logging.getLogger(__name__)


class UserService:
    """Service for user account operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def get_user_or_raise(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError(resource_type="user", resource_id=user_id)
        return user

    async def sync_from_claims(self, claims: dict) -> User:
        """
        Return the account for the token subject, creating or refreshing it.

        Email, name and roles follow the latest token, so a role revoked at
        the identity provider is gone on the next request. The ``role`` flag
        is only ever granted locally and is left alone.
        """
        user_id = claims["user_id"]
        email = (claims.get("email") or "").strip().lower() or None
        token_roles = list(dict.fromkeys(str(role) for role in (claims.get("roles") or [])))

        user = await self.get_user(user_id)
        if user is None:
            user = User(
                id=user_id,
                email=email,
                full_name=claims.get("full_name"),
                roles=token_roles,
            )
            self.db.add(user)
            try:
                await self.db.commit()
            except IntegrityError:
                # A concurrent first request created the same account
                await self.db.rollback()
                user = await self.get_user_or_raise(user_id)
            else:
                logger.info("User account created", extra={"user_id": user_id})
            return user

        changed = False
        if email and user.email != email:
            user.email = email
            changed = True
        if claims.get("full_name") and user.full_name != claims["full_name"]:
            user.full_name = claims["full_name"]
            changed = True
        if token_roles != (user.roles or []):
            logger.info(
                "User roles changed",
                extra={"user_id": user_id, "before": list(user.roles or []), "after": token_roles}
            )
            user.roles = token_roles
            changed = True

        if changed:
            await self.db.commit()
        return user

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.id))
        return list(result.scalars())
