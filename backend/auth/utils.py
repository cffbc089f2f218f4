from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.errors import AppError, ErrorCode
from config import settings

security = HTTPBearer(auto_error=False)

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Raised when a token fails signature, type, or expiry verification."""

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class TokenIdentity:
    user_id: str
    email: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # malformed stored hash
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(uuid.uuid4().hex)


def verify_password_or_dummy(password: str, hashed: str | None) -> bool:
    """Always runs one bcrypt check so unknown accounts cost the same as wrong passwords."""
    if hashed is None:
        verify_password(password, _dummy_hash())
        return False
    return verify_password(password, hashed)


def _secret_for(token_type: str) -> str:
    return settings.REFRESH_SECRET_KEY if token_type == REFRESH else settings.SECRET_KEY


def _lifetime_for(token_type: str) -> timedelta:
    if token_type == REFRESH:
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRY_MINUTES)


def create_token(user_id: str, email: str, token_type: str, now: datetime | None = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + _lifetime_for(token_type),
    }
    return jwt.encode(payload, _secret_for(token_type), algorithm=settings.JWT_ALGORITHM)


def issue_tokens(user_id: str, email: str, now: datetime | None = None) -> TokenPair:
    return TokenPair(
        access_token=create_token(user_id, email, ACCESS, now=now),
        refresh_token=create_token(user_id, email, REFRESH, now=now),
    )


def _verify(token: str, token_type: str) -> TokenIdentity:
    try:
        payload = jwt.decode(
            token,
            _secret_for(token_type),
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.InvalidTokenError as exc:
        raise TokenError() from exc
    if payload.get("type") != token_type:
        raise TokenError()
    user_id = str(payload.get("sub") or "")
    if not user_id:
        raise TokenError()
    return TokenIdentity(user_id=user_id, email=str(payload.get("email") or ""))


def verify_access(token: str) -> TokenIdentity:
    return _verify(token, ACCESS)


def verify_refresh(token: str) -> TokenIdentity:
    return _verify(token, REFRESH)


def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> TokenIdentity:
    """Resolve the caller from the bearer token. Stateless: the user row is not re-read."""
    if not credentials or not credentials.credentials:
        raise AppError.unauthorized("No token provided", ErrorCode.NO_TOKEN_PROVIDED)
    try:
        identity = verify_access(credentials.credentials)
    except TokenError as exc:
        raise AppError.unauthorized(exc.message, ErrorCode.INVALID_TOKEN)
    request.state.user_id = identity.user_id
    return identity
