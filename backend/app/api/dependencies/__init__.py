# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_user_id, get_identity_resolver
from .database import get_db
from .services import (
    get_push_dispatch_service,
    get_push_notification_service,
    get_push_transport,
    get_server_keys,
    get_subscription_store,
)

__all__ = [
    # Auth
    "get_current_user_id",
    "get_identity_resolver",
    # Database
    "get_db",
    # Services
    "get_push_dispatch_service",
    "get_push_notification_service",
    "get_push_transport",
    "get_server_keys",
    "get_subscription_store",
]
