"""
Travel Back-Office API - Main Application Entry Point

Booking management for agency staff:
- Bookings readable by all staff, editable by their owner and approved editors
- Edit-permission handshake (request -> approve/reject -> grant)
- Per-user notifications pushed over a websocket realtime channel
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.core.config import get_settings
from backoffice.core.exceptions import setup_exception_handlers
from backoffice.core.logging import setup_logging, get_logger
from backoffice.core.metrics import metrics_endpoint
from backoffice.api.router import api_router
from backoffice.api.middleware import RequestLoggingMiddleware
from backoffice.infrastructure.redis_client import close_redis, redis_status
from backoffice.realtime.broker import RealtimeBroker
from backoffice.services.strategy_factory import get_relay_strategy

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    await app.state.broker.start()

    yield

    await app.state.broker.stop()
    await close_redis()
    logger.info("application_shutdown")


def create_app(broker: RealtimeBroker = None) -> FastAPI:
    """
    Build the application.

    The realtime broker exists before any route can run: it is created here
    and attached to `app.state`, the lifespan only starts its relay.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Travel agency back-office API with booking edit approvals and realtime notifications",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.broker = broker or RealtimeBroker(
        relay=get_relay_strategy(),
        queue_size=settings.REALTIME_QUEUE_SIZE,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    setup_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for Docker and load balancers."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "realtime": {"relay": app.state.broker.relay.name},
            "redis": await redis_status(),
        }

    @app.get("/metrics", tags=["Health"], include_in_schema=False)
    def metrics():
        return metrics_endpoint()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
