"""
Hockey Registration API - Main Application Entry Point

Paid event registration with:
- Seat holds that expire on their own, so abandoned checkouts free capacity
- Optimistic commits against a versioned document store (memory, S3 or SQL)
- Idempotent payment webhooks keyed by hold id
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from registration_api.api.middleware import RequestLoggingMiddleware
from registration_api.api.router import api_router
from registration_api.core.config import Settings, get_settings
from registration_api.core.exceptions import RegistrationError
from registration_api.core.logging import get_logger, setup_logging
from registration_api.core.metrics import metrics_endpoint
from registration_api.services.cache_service import build_cache_service, connect_redis
from registration_api.services.container import build_container
from registration_api.services.email_service import build_notifier
from registration_api.services.payment_service import StripePaymentProvider
from registration_api.services.strategy_factory import get_store_strategy

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    settings: Settings = app.state.settings
    setup_logging(settings)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        store=settings.STORE_BACKEND,
    )

    if getattr(app.state, "container", None) is None:
        store = get_store_strategy(settings)
        await store.initialize()

        redis_client = await connect_redis(settings)
        if redis_client is None:
            logger.warning("redis_unavailable", message="Running with in-process cache only")

        app.state.container = build_container(
            settings,
            store=store,
            payments=StripePaymentProvider.from_settings(settings),
            notifier=build_notifier(settings),
            cache=build_cache_service(settings, redis_client),
        )

    yield

    await app.state.container.close()
    logger.info("application_shutdown")


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_rejected", error=exc.code, message=exc.message, context=exc.context)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Event registration API with expiring seat holds and paid checkout",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_origin_regex=settings.CORS_ORIGIN_REGEX,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Key", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(RegistrationError, registration_error_handler)

    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint for Docker and load balancers."""
        container = request.app.state.container
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "store": container.store.name,
            "cache": await container.cache.stats(),
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    return app


app = create_app()
