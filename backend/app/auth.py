from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, Protocol, cast

import jwt
from jwt import PyJWTError

from .core.config import secret_or_plain, settings
from .core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode a bearer access token signed with the app secret."""
    payload_raw = jwt.decode(
        token,
        secret_or_plain(settings.secret_key),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: The data to encode in the token; ``sub`` carries the user id
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode.update({"exp": expire})

    encoded_jwt = cast(
        str,
        jwt.encode(
            to_encode,
            secret_or_plain(settings.secret_key),
            algorithm=settings.algorithm,
        ),
    )
    logger.debug(f"Created access token for user: {data.get('sub')}")
    return encoded_jwt


class IdentityResolver(Protocol):
    def resolve(self, token: Optional[str]) -> str:
        """Return the user id behind ``token`` or raise UnauthorizedException."""
        ...


class JwtIdentityResolver:
    """Resolve bearer tokens issued by ``create_access_token``."""

    def resolve(self, token: Optional[str]) -> str:
        if not token:
            raise UnauthorizedException("Not authenticated", code="NOT_AUTHENTICATED")

        try:
            payload = decode_access_token(token)
        except PyJWTError as e:
            logger.warning(f"JWT validation error: {str(e)}")
            raise UnauthorizedException(
                "Could not validate credentials", code="INVALID_CREDENTIALS"
            ) from e

        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            logger.warning("Token payload missing 'sub' field")
            raise UnauthorizedException(
                "Could not validate credentials", code="INVALID_CREDENTIALS"
            )
        return user_id
