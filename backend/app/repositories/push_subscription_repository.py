"""Repository for web push subscriptions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.push_subscription import PushSubscription
from .base_repository import BaseRepository


class PushSubscriptionRepository(BaseRepository[PushSubscription]):
    """Data access for push subscriptions."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, PushSubscription)

    def create_subscription(
        self,
        user_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Insert a subscription, or refresh the keys of an existing (user, endpoint) row."""
        existing = self.get_by_endpoint(user_id, endpoint)
        if existing is not None:
            existing.p256dh_key = p256dh_key
            existing.auth_key = auth_key
            existing.user_agent = user_agent
            existing.updated_at = datetime.now(timezone.utc)
            self.db.flush()
            return existing

        return self.create(
            user_id=user_id,
            endpoint=endpoint,
            p256dh_key=p256dh_key,
            auth_key=auth_key,
            user_agent=user_agent,
        )

    def get_by_endpoint(self, user_id: str, endpoint: str) -> Optional[PushSubscription]:
        query = self.db.query(PushSubscription).filter(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        return cast(Optional[PushSubscription], query.first())

    def get_user_subscriptions(self, user_id: str) -> List[PushSubscription]:
        try:
            query = (
                self.db.query(PushSubscription)
                .filter(PushSubscription.user_id == user_id)
                .order_by(PushSubscription.created_at.desc(), PushSubscription.id.desc())
            )
            return cast(List[PushSubscription], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Error loading push subscriptions for %s: %s", user_id, exc)
            raise RepositoryException(f"Failed to load push subscriptions: {exc}") from exc

    def delete_subscription(self, user_id: str, endpoint: str) -> bool:
        deleted = (
            self.db.query(PushSubscription)
            .filter(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            )
            .delete(synchronize_session=False)
        )
        return bool(deleted)


__all__ = ["PushSubscriptionRepository"]
