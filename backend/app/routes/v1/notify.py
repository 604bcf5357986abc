# backend/app/routes/v1/notify.py
"""Notification fan-out route - API v1."""

import logging

from fastapi import APIRouter, Depends

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_push_dispatch_service
from ...schemas.push import NotifyRequest, NotifyResponse
from ...services.push_dispatch_service import PushDispatchService

logger = logging.getLogger(__name__)

# V1 router - mounted at /api/v1/notify
router = APIRouter(tags=["notify-v1"])


@router.post("", response_model=NotifyResponse)
def send_notification(
    request: NotifyRequest,
    user_id: str = Depends(get_current_user_id),
    service: PushDispatchService = Depends(get_push_dispatch_service),
) -> NotifyResponse:
    """
    Send a notification to every device the caller has subscribed.

    Per-device failures are reported in the counts; the request itself only
    fails when subscriptions cannot be read or the server key cannot sign.
    """
    result = service.dispatch(user_id, request)

    if result.total == 0:
        return NotifyResponse(message="No subscriptions found", successful=0, failed=0, total=0)

    return NotifyResponse(
        message="Notifications sent",
        successful=result.successful,
        failed=result.failed,
        total=result.total,
    )
