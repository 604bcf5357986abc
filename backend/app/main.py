# backend/app/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .core.config import is_running_tests, secret_or_plain, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .core.exceptions import VapidConfigurationError
from .core.vapid import ServerKeyPair, load_server_keys
from .database import Base, engine
from .errors import register_error_handlers
from .routes import health, prometheus
from .routes.v1 import notify as notify_v1, push as push_v1

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def _load_vapid_keys() -> ServerKeyPair:
    """Load the VAPID key pair; any problem stops startup."""
    if not settings.vapid_subject:
        raise VapidConfigurationError("VAPID_SUBJECT must be configured")

    keys = load_server_keys(
        settings.vapid_public_key,
        secret_or_plain(settings.vapid_private_key),
    )
    logger.info("VAPID keys loaded (public key %s...)", keys.public_key_b64[:12])
    return keys


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    # Startup
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    app.state.vapid_keys = _load_vapid_keys()
    Base.metadata.create_all(bind=engine)

    yield

    # Shutdown
    logger.info(f"{BRAND_NAME} API shutting down...")
    engine.dispose()


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)

# Register unified error envelope handlers
register_error_handlers(app)

_allowed_origins = settings.cors_origin_list or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    # Credentials travel in the Authorization header, not cookies.
    allow_credentials="*" not in _allowed_origins,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)
logger.info("CORS allow_origins=%s", _allowed_origins)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(notify_v1.router, prefix="/notify")
api_v1.include_router(push_v1.router, prefix="/push")

app.include_router(api_v1)

# Infrastructure routes (unversioned)
app.include_router(health.router)
app.include_router(prometheus.router)


__all__ = ["app"]
