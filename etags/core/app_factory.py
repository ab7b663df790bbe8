"""Application factory for the Etags admission service.

Centralizes app construction (config validation, logging, middleware,
handlers, routers, background tasks) so tests can build isolated apps.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from etags.api.routes import csrf_router, health_router, scan_router
from etags.core.config import settings, validate_settings
from etags.core.exception_handlers import setup_exception_handlers
from etags.core.logging import configure_logging
from etags.core.middleware import request_id_middleware
from etags.core.rate_limit import get_rate_limiter, run_periodic_sweep
from etags.services.tags import AbstractTagService, set_tag_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the rate limit sweep for as long as the app is serving."""

    interval = settings.app.rate_limit_sweep_interval_seconds
    sweep_task = asyncio.create_task(run_periodic_sweep(get_rate_limiter(), interval))
    logger.info("app.startup", extra={"sweep_interval_s": interval})
    try:
        yield
    finally:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
        logger.info("app.shutdown")


def create_app(*, tag_service: AbstractTagService | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        tag_service: Business logic backend for the scan/claim routes.

    Returns:
        Configured FastAPI app.

    Raises:
        ConfigurationAppError: If the configuration is unsafe to serve with.
    """
    # Logging first so the config warning below is formatted
    configure_logging(settings.log)
    validate_settings(settings)

    if tag_service is not None:
        set_tag_service(tag_service)

    app = FastAPI(
        title="Etags Admission API",
        description=(
            "Request admission for Etags product authentication: CSRF token "
            "issuance and verification plus per-client rate limiting in front "
            "of tag scan and claim endpoints."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(csrf_router)
    app.include_router(scan_router)
    app.include_router(health_router)

    return app
