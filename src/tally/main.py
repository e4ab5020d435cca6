from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware, correlation_id
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import RequestResponseEndpoint

from src.tally.api.v1.router import create_api_router
from src.tally.core.config import get_settings
from src.tally.core.db import dispose_engine
from src.tally.core.exceptions import setup_exception_handlers
from src.tally.core.health import setup_health_endpoint, setup_metrics
from src.tally.core.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from src.tally.core.rate_limit import limiter
from src.tally.core.security import SecurityHeadersMiddleware
from src.tally.core.shutdown import request_tracker

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()
    setup_logging(settings.debug)
    logger.info(
        f"Starting {settings.app_name}",
        multi_tenant_enabled=settings.multi_tenant_enabled,
    )

    yield

    grace_period = settings.shutdown_grace_period
    logger.info("Shutdown initiated", in_flight=request_tracker.in_flight_count)
    await request_tracker.start_shutdown()
    drained = await request_tracker.wait_for_drain(timeout=grace_period)
    if not drained:
        logger.warning(
            f"Shutdown timeout after {grace_period}s",
            in_flight=request_tracker.in_flight_count,
        )

    await dispose_engine()
    logger.info("Shutdown complete")


OPENAPI_TAGS = [
    {"name": "auth", "description": "Login, sessions and password management"},
    {"name": "users", "description": "User administration within an organization"},
    {"name": "health", "description": "Liveness and database health"},
]


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Credential and session management API",
        version="0.1.0",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_openapi else None,
        redoc_url="/redoc" if settings.enable_openapi else None,
        openapi_url="/openapi.json" if settings.enable_openapi else None,
    )

    setup_exception_handlers(app)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Middleware added later wraps middleware added earlier
    @app.middleware("http")
    async def logging_context_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Bind request_id to log context for all requests."""
        clear_request_context()
        bind_request_context(correlation_id.get())
        try:
            return await call_next(request)
        finally:
            clear_request_context()

    @app.middleware("http")
    async def track_requests_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Track in-flight requests for graceful shutdown."""
        if request.url.path in ["/health", "/metrics"]:
            return await call_next(request)

        async with request_tracker.track_request():
            return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    app.add_middleware(SecurityHeadersMiddleware, serve_docs=settings.enable_openapi)

    # Outermost, so every inner layer sees the request id
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(create_api_router(settings))

    setup_metrics(app)
    setup_health_endpoint(app)

    return app


app = create_app()
