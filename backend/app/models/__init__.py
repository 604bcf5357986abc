"""
Database models for the push dispatch backend.

The subscription store is the only table this service owns.
"""

from .push_subscription import PushSubscription

__all__ = ["PushSubscription"]
