import secrets
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from dailyquiz.core.config import settings
from dailyquiz.core.errors import AuthorizationError


bearer_scheme = HTTPBearer(auto_error=False)


def create_jwt_token(data: dict, expires_minutes: int | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or settings.JWT_EXP_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_jwt_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthorizationError()


def is_admin_key(key: str | None) -> bool:
    expected = settings.ADMIN_KEY
    if not expected or not key:
        return False
    return secrets.compare_digest(key.encode(), expected.encode())


def require_admin(key: str | None) -> None:
    if not is_admin_key(key):
        raise AuthorizationError()


def caller_identity(request: Request) -> str:
    """Network identity of an anonymous player.

    First hop of X-Forwarded-For, then the socket peer. The header is
    trusted as-is.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    if credentials is None:
        return None
    payload = decode_jwt_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthorizationError()
    return str(user_id)


async def get_current_user_id(user_id: str | None = Depends(get_optional_user_id)) -> str:
    if user_id is None:
        raise AuthorizationError()
    return user_id
