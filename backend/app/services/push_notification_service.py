# backend/app/services/push_notification_service.py
"""
Push subscription registry service.

Browsers register here after the user grants notification permission;
delivery is handled by PushDispatchService.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, ServiceException
from ..models.push_subscription import PushSubscription
from ..repositories.push_subscription_repository import PushSubscriptionRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class PushNotificationService(BaseService):
    """Service for managing web push subscriptions."""

    def __init__(
        self,
        db: Session,
        subscription_repository: Optional[PushSubscriptionRepository] = None,
    ) -> None:
        super().__init__(db)
        self.subscription_repository = subscription_repository or PushSubscriptionRepository(db)

    @BaseService.measure_operation("subscribe")
    def subscribe(
        self,
        user_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """
        Store a push subscription for a user.

        Re-registering the same endpoint refreshes its keys instead of
        creating a duplicate.
        """
        try:
            with self.transaction():
                subscription = self.subscription_repository.create_subscription(
                    user_id=user_id,
                    endpoint=endpoint,
                    p256dh_key=p256dh_key,
                    auth_key=auth_key,
                    user_agent=user_agent,
                )
        except RepositoryException as exc:
            raise ServiceException(f"Failed to save subscription: {exc}") from exc

        self.log_operation("subscribe", user_id=user_id, subscription_id=subscription.id)
        return subscription

    @BaseService.measure_operation("unsubscribe")
    def unsubscribe(self, user_id: str, endpoint: str) -> bool:
        """Remove one subscription. Returns True if a row was deleted."""
        with self.transaction():
            return self.subscription_repository.delete_subscription(user_id, endpoint)

    @BaseService.measure_operation("get_user_subscriptions")
    def get_user_subscriptions(self, user_id: str) -> List[PushSubscription]:
        try:
            return self.subscription_repository.get_user_subscriptions(user_id)
        except RepositoryException as exc:
            raise ServiceException(str(exc)) from exc
