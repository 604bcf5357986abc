"""
Subscription store used by push dispatch.

The dispatcher only needs two things from storage: every subscription of a
user, and deletion by id when a push service reports the endpoint gone.
Deletions run on dispatch worker threads, so the SQL store opens a fresh
session per operation instead of sharing the request session.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from threading import Lock
from typing import Callable, Dict, List, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, SubscriptionStoreError
from ..core.ulid_helper import generate_ulid
from ..models.push_subscription import PushSubscription
from ..repositories.push_subscription_repository import PushSubscriptionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionRecord:
    """Detached, read-only view of a push subscription."""

    id: str
    user_id: str
    endpoint: str
    p256dh: str
    auth: str

    @classmethod
    def from_model(cls, subscription: PushSubscription) -> "SubscriptionRecord":
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            endpoint=subscription.endpoint,
            p256dh=subscription.p256dh_key,
            auth=subscription.auth_key,
        )


class SubscriptionStore(Protocol):
    def list_for_user(self, user_id: str) -> Sequence[SubscriptionRecord]:
        """Return every subscription of ``user_id``; raise SubscriptionStoreError on failure."""
        ...

    def delete(self, subscription_id: str) -> bool:
        """Delete by id. Returns False when nothing matched; never raises for a missing id."""
        ...


class SqlSubscriptionStore:
    """SubscriptionStore backed by the push_subscriptions table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def list_for_user(self, user_id: str) -> List[SubscriptionRecord]:
        session = self._session_factory()
        try:
            rows = PushSubscriptionRepository(session).get_user_subscriptions(user_id)
            return [SubscriptionRecord.from_model(row) for row in rows]
        except (RepositoryException, SQLAlchemyError) as exc:
            logger.error("Error fetching subscriptions for user %s: %s", user_id, exc)
            raise SubscriptionStoreError() from exc
        finally:
            session.close()

    def delete(self, subscription_id: str) -> bool:
        session = self._session_factory()
        try:
            deleted = PushSubscriptionRepository(session).delete(subscription_id)
            session.commit()
            return deleted
        except SQLAlchemyError as exc:
            session.rollback()
            raise RepositoryException(f"Failed to delete subscription: {exc}") from exc
        finally:
            session.close()


class InMemorySubscriptionStore:
    """Thread-safe in-process store for tests and local development."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._rows: Dict[str, SubscriptionRecord] = {}

    def add(self, user_id: str, endpoint: str, p256dh: str = "", auth: str = "") -> SubscriptionRecord:
        record = SubscriptionRecord(
            id=generate_ulid(),
            user_id=user_id,
            endpoint=endpoint,
            p256dh=p256dh,
            auth=auth,
        )
        with self._lock:
            self._rows[record.id] = record
        return record

    def list_for_user(self, user_id: str) -> List[SubscriptionRecord]:
        with self._lock:
            return [row for row in self._rows.values() if row.user_id == user_id]

    def delete(self, subscription_id: str) -> bool:
        with self._lock:
            return self._rows.pop(subscription_id, None) is not None


__all__ = [
    "InMemorySubscriptionStore",
    "SqlSubscriptionStore",
    "SubscriptionRecord",
    "SubscriptionStore",
]
