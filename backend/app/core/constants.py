"""Application-wide constants for the routine push service."""

from __future__ import annotations

BRAND_NAME = "Routine Push"

# API metadata
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Delivers web push notifications to every device a user has subscribed."
API_VERSION = "1.0.0"
