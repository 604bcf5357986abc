# backend/app/api/dependencies/auth.py
"""
Authentication dependencies.

The frontend sends its session JWT as ``Authorization: Bearer <token>``; the
``sub`` claim is the user id whose devices receive notifications.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...auth import IdentityResolver, JwtIdentityResolver

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_identity_resolver = JwtIdentityResolver()


def get_identity_resolver() -> IdentityResolver:
    return _identity_resolver


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> str:
    """
    Resolve the calling user's id from the bearer credential.

    Raises:
        UnauthorizedException: missing, malformed or expired credential
    """
    token = credentials.credentials if credentials else None
    return resolver.resolve(token)
