"""Repository layer for data access."""

from .base_repository import BaseRepository
from .push_subscription_repository import PushSubscriptionRepository

__all__ = ["BaseRepository", "PushSubscriptionRepository"]
