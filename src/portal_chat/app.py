from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from portal_chat.api.middleware.metrics import RequestTimingMiddleware
from portal_chat.api.v1.routers import health, messages, users, ws
from portal_chat.application.exceptions import (
    AppError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PersistenceTimeoutError,
    ValidationError,
)
from portal_chat.config import settings
from portal_chat.infrastructure.bus.redis_pubsub import (
    RedisFanoutRelay,
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
    make_fanout_callback,
)
from portal_chat.infrastructure.ws.registry import ConnectionRegistry
from portal_chat.infrastructure.ws.relay import LocalRelay

logger = logging.getLogger(__name__)

_HTTP_STATUS: tuple[tuple[type[AppError], int], ...] = (
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (ConflictError, 409),
    (ValidationError, 422),
    (PersistenceTimeoutError, 503),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    if settings.FANOUT_RELAY != "redis":
        yield
        return

    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        make_fanout_callback(LocalRelay(app.state.registry)),
    )
    await subscriber.start()
    app.state.relay = RedisFanoutRelay(
        RedisPubSubPublisher(app.state.redis),
        settings.REDIS_PUBSUB_CHANNEL,
    )

    yield

    await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Student Portal Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    # one registry per process, shared by the WS endpoint and HTTP routes
    registry = ConnectionRegistry()
    app.state.registry = registry
    app.state.relay = LocalRelay(registry)
    app.state.redis = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(_req: Request, exc: AppError) -> JSONResponse:
        status_code = next(
            (code for exc_type, code in _HTTP_STATUS if isinstance(exc, exc_type)),
            400,
        )
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
