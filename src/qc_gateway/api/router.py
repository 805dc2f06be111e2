"""/auth endpoints: register, login, refresh, me."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.qc_common.database import get_db_session
from src.qc_common.response import ApiResponse, success_response
from src.qc_gateway.auth.dependencies import get_current_user
from src.qc_gateway.user.db_models import UserModel
from src.qc_gateway.user.schemas import (
    LoginRequest,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    TokenResponse,
    UserInfo,
)
from src.qc_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()
_ACCESS_TTL_SECONDS = settings.JWT_EXPIRE_MINUTES * 60

Db = Annotated[AsyncSession, Depends(get_db_session)]


def _user_info(user: UserModel) -> UserInfo:
    return UserInfo(user_id=str(user.id), name=user.name, email=user.email, role=user.role)


def _tokens_for(user: UserModel) -> dict:
    access_token, refresh_token = _service.issue_tokens(user)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=_ACCESS_TTL_SECONDS,
        user=_user_info(user),
    ).model_dump()


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def register(request: Request, body: RegisterRequest, db: Db) -> ApiResponse:
    async with db.begin():
        user = await _service.register(body.name, body.email, body.password, body.role.value, db)
    return success_response(request, _tokens_for(user), "User registered")


@router.post("/login", response_model=ApiResponse)
async def login(request: Request, body: LoginRequest, db: Db) -> ApiResponse:
    user = await _service.login(body.email, body.password, db)
    return success_response(request, _tokens_for(user), "Login successful")


@router.post("/refresh", response_model=ApiResponse)
async def refresh(request: Request, body: RefreshRequest, db: Db) -> ApiResponse:
    access_token = await _service.refresh(body.refresh_token, db)
    data = RefreshResponse(access_token=access_token, expires_in=_ACCESS_TTL_SECONDS)
    return success_response(request, data.model_dump(), "Token refreshed")


@router.get("/me", response_model=ApiResponse)
async def me(
    request: Request, user: Annotated[UserModel, Depends(get_current_user)]
) -> ApiResponse:
    return success_response(request, _user_info(user).model_dump())
