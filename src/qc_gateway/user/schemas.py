"""Request and response bodies for /auth.

Only school addresses (REQUIRED_EMAIL_DOMAIN, ".edu" by default) may
register; emails are stored and compared lower-cased.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator

from config.settings import settings
from src.qc_common.enums import UserRole
from src.qc_gateway.auth.password import MAX_PASSWORD_BYTES


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=MAX_PASSWORD_BYTES)
    role: UserRole = UserRole.STUDENT

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must have at least 2 visible characters")
        return v

    @field_validator("email")
    @classmethod
    def school_email(cls, v: str) -> str:
        v = v.lower()
        if not v.endswith(settings.REQUIRED_EMAIL_DOMAIN):
            raise ValueError(f"School email required ({settings.REQUIRED_EMAIL_DOMAIN})")
        return v

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str


class UserInfo(BaseModel):
    user_id: str
    name: str
    email: str
    role: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
