# backend/app/routes/v1/push.py
"""Push subscription routes - API v1."""

import logging

from fastapi import APIRouter, Depends

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_push_notification_service, get_server_keys
from ...core.vapid import ServerKeyPair
from ...schemas.push import (
    PushStatusResponse,
    PushSubscribeRequest,
    PushSubscriptionResponse,
    PushUnsubscribeRequest,
    VapidPublicKeyResponse,
)
from ...services.push_notification_service import PushNotificationService

logger = logging.getLogger(__name__)

# V1 router - mounted at /api/v1/push
router = APIRouter(tags=["push-v1"])


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
def get_vapid_public_key(keys: ServerKeyPair = Depends(get_server_keys)) -> VapidPublicKeyResponse:
    """
    Get the VAPID public key for push subscription.

    This endpoint is public - the key is needed by the browser
    to subscribe to push notifications.
    """
    return VapidPublicKeyResponse(public_key=keys.public_key_b64)


@router.post("/subscribe", response_model=PushStatusResponse)
def subscribe_to_push(
    request: PushSubscribeRequest,
    user_id: str = Depends(get_current_user_id),
    service: PushNotificationService = Depends(get_push_notification_service),
) -> PushStatusResponse:
    """
    Subscribe to push notifications.

    Called by the frontend after the user grants notification permission
    and the browser creates a push subscription.
    """
    service.subscribe(
        user_id=user_id,
        endpoint=request.endpoint,
        p256dh_key=request.p256dh_key,
        auth_key=request.auth_key,
        user_agent=request.user_agent,
    )
    return PushStatusResponse(success=True, message="Subscribed to push notifications")


@router.delete("/unsubscribe", response_model=PushStatusResponse)
def unsubscribe_from_push(
    request: PushUnsubscribeRequest,
    user_id: str = Depends(get_current_user_id),
    service: PushNotificationService = Depends(get_push_notification_service),
) -> PushStatusResponse:
    """
    Unsubscribe from push notifications.

    Called when user disables notifications or subscription expires.
    """
    deleted = service.unsubscribe(user_id=user_id, endpoint=request.endpoint)

    if deleted:
        return PushStatusResponse(success=True, message="Unsubscribed from push notifications")
    return PushStatusResponse(success=False, message="Subscription not found")


@router.get("/subscriptions", response_model=list[PushSubscriptionResponse])
def list_subscriptions(
    user_id: str = Depends(get_current_user_id),
    service: PushNotificationService = Depends(get_push_notification_service),
) -> list[PushSubscriptionResponse]:
    """
    List all push subscriptions for the current user.

    Users may have multiple subscriptions (different devices/browsers).
    """
    subscriptions = service.get_user_subscriptions(user_id)
    return [PushSubscriptionResponse.model_validate(item) for item in subscriptions]
