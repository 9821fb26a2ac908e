"""
JWT access token utilities for CMS sessions.
Tokens travel in the httpOnly cms_token cookie, or in a Bearer header.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, Request
from jose import JWTError, jwt

ALGORITHM = "HS256"
TOKEN_COOKIE = "cms_token"


class InvalidTokenError(Exception):
    """Token is malformed, expired, signed with another key or not an access token."""


def create_access_token(data: dict, secret: str, expires_delta: timedelta) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to include (at least "sub")
        secret: Signing key
        expires_delta: Lifetime of the token

    Returns:
        str: Encoded JWT token
    """
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "jti": uuid.uuid4().hex,
        "type": "access"
    })
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict:
    """
    Verify and decode an access token; expiry is checked by jose.

    Raises:
        InvalidTokenError: If the token cannot be trusted
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    if payload.get("type") != "access":
        raise InvalidTokenError("Token is not an access token")
    if not payload.get("sub") or not payload.get("jti"):
        raise InvalidTokenError("Token is missing required claims")
    return payload


def token_from_request(
    request: Request,
    authorization: Optional[str] = Header(None, description="Bearer token (fallback to cookie)")
) -> Optional[str]:
    """
    FastAPI dependency returning the session token, if any.
    The httpOnly cookie wins over the Authorization header.
    """
    token = request.cookies.get(TOKEN_COOKIE)
    if not token and authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]
    return token or None
