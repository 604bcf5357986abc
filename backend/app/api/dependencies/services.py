# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
import httpx
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.exceptions import ServiceException
from ...core.vapid import ServerKeyPair
from ...database import SessionLocal
from ...services.push_dispatch_service import PushDispatchService
from ...services.push_notification_service import PushNotificationService
from ...services.push_subscription_store import SqlSubscriptionStore, SubscriptionStore
from .database import get_db

logger = logging.getLogger(__name__)


def get_server_keys(request: Request) -> ServerKeyPair:
    """VAPID key pair loaded once by the application lifespan."""
    keys = getattr(request.app.state, "vapid_keys", None)
    if keys is None:
        raise ServiceException("Push notifications not configured", code="VAPID_NOT_CONFIGURED")
    return keys


def get_subscription_store() -> SubscriptionStore:
    return SqlSubscriptionStore(SessionLocal)


def get_push_transport() -> Optional[httpx.BaseTransport]:
    """Outbound transport for push requests; None means httpx's default."""
    return None


def get_push_dispatch_service(
    store: SubscriptionStore = Depends(get_subscription_store),
    keys: ServerKeyPair = Depends(get_server_keys),
    transport: Optional[httpx.BaseTransport] = Depends(get_push_transport),
) -> PushDispatchService:
    """
    Get push dispatch service instance.

    Returns:
        PushDispatchService configured from settings
    """
    return PushDispatchService(
        store,
        keys,
        subject=settings.vapid_subject,
        ttl_seconds=settings.push_ttl_seconds,
        timeout=settings.push_request_timeout_seconds,
        max_concurrency=settings.push_max_concurrency,
        transport=transport,
    )


def get_push_notification_service(
    db: Session = Depends(get_db),
) -> PushNotificationService:
    """Get push subscription registry service instance."""
    return PushNotificationService(db)
