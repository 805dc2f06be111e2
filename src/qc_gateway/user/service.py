"""Accounts: register, login, token refresh.

Registration runs inside the router's `db.begin()`; login and refresh only
read. Unknown email and wrong password are the same error so addresses
cannot be probed.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.qc_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
)
from src.qc_gateway.auth.jwt_handler import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.qc_gateway.auth.password import hash_password, verify_password
from src.qc_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


class UserService:
    async def _by_email(self, db: AsyncSession, email: str) -> UserModel | None:
        result = await db.execute(select(UserModel).where(UserModel.email == email.lower()))
        return result.scalar_one_or_none()

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str,
        db: AsyncSession,
    ) -> UserModel:
        """Add a user; the UNIQUE(email) constraint backs the pre-check."""
        if await self._by_email(db, email) is not None:
            logger.info("Registration refused, email taken: %s", email.lower())
            raise EmailExistsError()

        user = UserModel(
            name=name,
            email=email.lower(),
            password_hash=hash_password(password),
            role=role,
            is_active=True,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        logger.info("User %s registered as %s", user.id, role)
        return user

    async def login(self, email: str, password: str, db: AsyncSession) -> UserModel:
        user = await self._by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDisabledError()
        return user

    def issue_tokens(self, user: UserModel) -> tuple[str, str]:
        """(access_token, refresh_token) for `user`."""
        return create_access_token(str(user.id), user.name), create_refresh_token(str(user.id))

    async def refresh(self, refresh_token: str, db: AsyncSession) -> str:
        """New access token for a valid refresh token of an active user."""
        claims = decode_token(refresh_token, REFRESH)
        try:
            user_id = uuid.UUID(claims["sub"])
        except ValueError:
            raise InvalidRefreshTokenError() from None
        user = await db.get(UserModel, user_id)
        if user is None or not user.is_active:
            raise InvalidRefreshTokenError()
        return create_access_token(str(user.id), user.name)
