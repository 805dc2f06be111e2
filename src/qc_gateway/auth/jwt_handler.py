"""HS256 access and refresh tokens signed with JWT_SECRET.

Claims: `sub` (user id), `type` ("access" | "refresh"), `iat`, `exp`.
Access tokens also carry `name`, the display name at issue time, so the
WebSocket feed can label a subscriber without a database read. HTTP
handlers never trust it and re-load the user instead.

Tokens are not revocable; they live until `exp`.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.qc_common.errors import InvalidCredentialsError, InvalidRefreshTokenError

ACCESS = "access"
REFRESH = "refresh"

_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
_REFRESH_EXPIRE = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)


def _encode(user_id: str, token_type: str, ttl: timedelta, **extra: Any) -> str:
    issued = datetime.now(UTC)
    claims = {"sub": user_id, "type": token_type, "iat": issued, "exp": issued + ttl, **extra}
    return str(jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM))


def create_access_token(user_id: str, name: str = "") -> str:
    return _encode(user_id, ACCESS, _ACCESS_EXPIRE, name=name)


def create_refresh_token(user_id: str) -> str:
    return _encode(user_id, REFRESH, _REFRESH_EXPIRE)


def decode_token(token: str, expected_type: str) -> dict[str, Any]:
    """Verify signature, expiry and token type; return the claims.

    The accepted algorithm list is pinned to JWT_ALGORITHM, and a refresh
    token is never accepted where an access token is expected (or vice
    versa).

    Raises:
        InvalidCredentialsError: bad access token.
        InvalidRefreshTokenError: bad refresh token.
    """
    error = InvalidCredentialsError if expected_type == ACCESS else InvalidRefreshTokenError
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise error() from None
    if claims.get("type") != expected_type or not claims.get("sub"):
        raise error()
    return claims


def token_identity(token: str) -> tuple[str, str] | None:
    """(user id, display name) of a valid access token, else None."""
    try:
        claims = decode_token(token, ACCESS)
    except InvalidCredentialsError:
        return None
    return str(claims["sub"]), str(claims.get("name", ""))
