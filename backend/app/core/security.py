"""Token helpers for the verified-identity boundary."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping

import jwt
from fastapi import HTTPException, status

from app.config import get_settings

settings = get_settings()


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT access token with an expiration time."""

    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT access token."""

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials"
        ) from exc
    return payload


def extract_token(
    query_params: Mapping[str, str],
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
) -> str | None:
    """Find a bearer token in the query string, the Authorization header or the auth cookie."""

    token = query_params.get("token")
    if token:
        return token
    auth_header = headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        candidate = auth_header.removeprefix("Bearer ").strip()
        if candidate:
            return candidate
    return cookies.get(settings.auth_cookie_name) or None
