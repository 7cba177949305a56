"""JWT token management for authentication.

The signing key is always passed in; it comes from the application's
``Settings`` rather than a module global.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import get_request_settings

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # User ID
    exp: datetime
    iat: datetime
    type: str
    jti: str


def create_access_token(
    user_id: uuid.UUID,
    secret_key: str,
    expires_minutes: int,
) -> tuple[str, int]:
    """Create an access token.

    Args:
        user_id: User UUID
        secret_key: HMAC signing key
        expires_minutes: Lifetime of the token

    Returns:
        tuple[str, int]: (token, expires_in seconds)
    """
    now = datetime.now(timezone.utc)
    expires_delta = timedelta(minutes=expires_minutes)

    payload = {
        "sub": str(user_id),
        "exp": now + expires_delta,
        "iat": now,
        "type": ACCESS_TOKEN_TYPE,
        "jti": str(uuid.uuid4()),
    }

    token = jwt.encode(payload, secret_key, algorithm=ALGORITHM)
    return token, int(expires_delta.total_seconds())


def decode_token(token: str, secret_key: str) -> TokenPayload | None:
    """Decode and validate a JWT token.

    Signature and expiry are checked by python-jose.

    Returns:
        TokenPayload | None: Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            type=payload["type"],
            jti=payload["jti"],
        )
    except (JWTError, KeyError, TypeError, ValueError):
        return None


def get_user_id_from_token(token: str, secret_key: str) -> uuid.UUID | None:
    """Extract user ID from a valid access token.

    Returns:
        uuid.UUID | None: User ID if token is valid
    """
    payload = decode_token(token, secret_key)
    if payload is None or payload.type != ACCESS_TOKEN_TYPE:
        return None

    try:
        return uuid.UUID(payload.sub)
    except ValueError:
        return None


security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> uuid.UUID:
    """FastAPI dependency returning the verified caller's user ID.

    Raises:
        HTTPException: 401 if no bearer token was sent, 403 if it is invalid
            or expired
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = get_request_settings(request)
    user_id = get_user_id_from_token(credentials.credentials, settings.SECRET_KEY)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid token",
        )
    return user_id
