# backend/app/schemas/__init__.py
"""
Pydantic schemas for the push dispatch API.
"""

from .base_responses import HealthCheckResponse
from .push import (
    NotifyRequest,
    NotifyResponse,
    PushStatusResponse,
    PushSubscribeRequest,
    PushSubscriptionResponse,
    PushUnsubscribeRequest,
    VapidPublicKeyResponse,
)

__all__ = [
    "HealthCheckResponse",
    "NotifyRequest",
    "NotifyResponse",
    "PushStatusResponse",
    "PushSubscribeRequest",
    "PushSubscriptionResponse",
    "PushUnsubscribeRequest",
    "VapidPublicKeyResponse",
]
