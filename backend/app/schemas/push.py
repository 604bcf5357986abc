# backend/app/schemas/push.py
"""Schemas for push notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from pydantic import ConfigDict, Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class PushSubscribeRequest(StrictRequestModel):
    """Request to subscribe to push notifications."""

    endpoint: str = Field(
        ...,
        description="Push service endpoint URL",
        max_length=2048,
    )
    p256dh_key: str = Field(
        ...,
        alias="p256dh",
        description="Public encryption key",
        max_length=512,
    )
    auth_key: str = Field(
        ...,
        alias="auth",
        description="Auth secret",
        max_length=512,
    )
    user_agent: Optional[str] = Field(None, description="Browser/device info", max_length=500)

    model_config = ConfigDict(
        **StrictRequestModel.model_config,
        populate_by_name=True,
    )

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("Push endpoint must use HTTPS")
        try:
            parts = urlsplit(value)
            host, _port = parts.hostname, parts.port
        except ValueError as exc:
            raise ValueError("Push endpoint is not a valid URL") from exc
        if not host:
            raise ValueError("Push endpoint must include a host")
        return value


class PushUnsubscribeRequest(StrictRequestModel):
    """Request to unsubscribe from push notifications."""

    endpoint: str = Field(..., description="Push service endpoint URL to remove")


class PushSubscriptionResponse(StrictModel):
    """Push subscription details."""

    id: str
    endpoint: str
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, **StrictModel.model_config)


class VapidPublicKeyResponse(StrictModel):
    """VAPID public key response."""

    public_key: str


class PushStatusResponse(StrictModel):
    """Response after subscribe/unsubscribe."""

    success: bool
    message: str


class NotifyRequest(StrictRequestModel):
    """Notification content to fan out to every device of the caller."""

    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., max_length=4000)
    tag: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=2048)
    vibrate: Optional[List[int]] = Field(None, max_length=32)
    require_interaction: Optional[bool] = Field(None, alias="requireInteraction")
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        **StrictRequestModel.model_config,
        populate_by_name=True,
    )

    @field_validator("vibrate")
    @classmethod
    def validate_vibrate(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and any(step < 0 for step in value):
            raise ValueError("Vibration pattern entries must be non-negative")
        return value


class NotifyResponse(StrictModel):
    """Aggregated outcome of a notify call."""

    message: str
    successful: int
    failed: int
    total: int
