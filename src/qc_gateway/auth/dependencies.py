"""Bearer-token dependencies for protected routes.

    caller: Principal = Depends(get_current_principal)

A missing, malformed or expired token, or a token whose user no longer
exists, is a 401 with `WWW-Authenticate: Bearer`. A disabled account is
AccountDisabledError (403).
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.qc_common.database import get_db_session
from src.qc_common.errors import AccountDisabledError, InvalidCredentialsError
from src.qc_gateway.auth.jwt_handler import ACCESS, decode_token
from src.qc_gateway.user.db_models import UserModel
from src.qc_listing.domain.models import Principal

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    try:
        user_id = uuid.UUID(decode_token(token, ACCESS)["sub"])
    except (InvalidCredentialsError, ValueError):
        raise _unauthorized() from None

    user = await db.get(UserModel, user_id)
    if user is None:
        raise _unauthorized()
    if not user.is_active:
        raise AccountDisabledError()
    return user


async def get_current_principal(
    user: UserModel = Depends(get_current_user),
) -> Principal:
    """The caller as the listing domain sees it: id plus current display name."""
    return Principal(user_id=str(user.id), display_name=user.name)
