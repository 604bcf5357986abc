# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional, cast

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

_DEFAULT_SECRET_KEY = SecretStr("dev-only-change-me")

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


def secret_or_plain(value: SecretStr | str | None) -> str:
    """Return the raw string behind a SecretStr, or the value itself."""
    if value is None:
        return ""
    getter = getattr(value, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return str(value)


class Settings(BaseSettings):
    environment: str = "development"
    log_level: str = "INFO"

    # Subscription store
    database_url: str = "sqlite:///./routine_push.db"

    # Bearer credentials presented by the frontend
    secret_key: SecretStr = Field(
        default=_DEFAULT_SECRET_KEY,
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    # VAPID / web push
    vapid_public_key: str = Field(
        default="",
        description="Uncompressed P-256 public key, base64url. Advertised to clients.",
    )
    vapid_private_key: SecretStr = Field(
        default=SecretStr(""),
        description="PKCS8 DER private key, base64url",
    )
    vapid_subject: str = Field(
        default="",
        description="Contact URI sent as the VAPID 'sub' claim (mailto:...)",
    )
    push_ttl_seconds: int = Field(default=86400, ge=0)
    push_request_timeout_seconds: float = Field(default=10.0, gt=0)
    push_max_concurrency: int = Field(default=10, ge=1)

    # CORS: comma-separated list of origins
    cors_origins: str = "*"

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("vapid_public_key", "vapid_subject", mode="before")
    @classmethod
    def _strip(cls, value: Optional[str]) -> str:
        """Whitespace from copy/paste breaks base64 decoding."""
        return (value or "").strip()

    @field_validator("vapid_subject")
    @classmethod
    def _validate_subject(cls, value: str) -> str:
        if value and not value.startswith(("mailto:", "https://")):
            raise ValueError("VAPID_SUBJECT must be a mailto: or https: URI")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def get_database_url(self) -> str:
        return self.database_url


settings = Settings()
