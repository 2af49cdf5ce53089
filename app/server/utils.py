from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from infrastructure.logging import get_module_logger
from infrastructure.services.providers import get_settings

ACCESS_TOKEN_EXPIRE_MINUTES = 60

logger = get_module_logger()
oauth2_scheme = HTTPBearer(auto_error=False)


class Caller(BaseModel):
    """Authenticated caller taken from the access token claims.

    Attributes:
        sub: Identity-provider subject
        email: Email claim, used for the identity fallback lookup
        role: Role claim, checked against capabilities
    """

    sub: str
    email: Optional[str] = None
    role: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """
    Generates a JSON Web Token (JWT) for a caller.

    Args:
        data (dict): The claims to include in the token payload.
        expires_delta (Optional[timedelta], optional): The expiration time for the token.
            Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: The encoded JWT token as a string.

    Raises:
        ValueError: If expires_delta is negative or no signing secret is configured.
    """
    if expires_delta and expires_delta.total_seconds() < 0:
        raise ValueError("expires_delta cannot be negative")

    server_settings = get_settings().server
    if not server_settings.SECRET_KEY:
        raise ValueError("SESSION_SECRET_KEY is not configured")

    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode, server_settings.SECRET_KEY, algorithm=server_settings.ALGORITHM
    )


def decode_access_token(token: str) -> Caller:
    """
    Verify a bearer token and return the caller it identifies.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no subject.
    """
    server_settings = get_settings().server
    if not server_settings.SECRET_KEY:
        logger.error("jwt_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )
    try:
        payload = jwt.decode(
            token, server_settings.SECRET_KEY, algorithms=[server_settings.ALGORITHM]
        )
    except jwt.PyJWTError as e:
        logger.warning("jwt_token_decoding_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        ) from e

    if not payload.get("sub"):
        logger.warning("jwt_token_invalid", reason="missing_subject")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )
    return Caller(
        sub=payload["sub"],
        email=payload.get("email"),
        role=payload.get("role"),
    )


def _extract_token(
    request: Request, token: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    return token.credentials if token else request.cookies.get("access_token")


async def get_current_user(
    request: Request,
    token: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
) -> Caller:
    """
    Extracts and verifies the JWT from the Authorization header (or the
    `access_token` cookie) to authenticate the caller.

    Raises:
        HTTPException: If the token is missing or invalid.
    """
    jwt_token = _extract_token(request, token)
    if not jwt_token:
        logger.info("jwt_token_missing", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    return decode_access_token(jwt_token)


async def get_optional_user(
    request: Request,
    token: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
) -> Optional[Caller]:
    """Like `get_current_user`, but returns None instead of rejecting."""
    jwt_token = _extract_token(request, token)
    if not jwt_token:
        return None
    try:
        return decode_access_token(jwt_token)
    except HTTPException:
        return None
