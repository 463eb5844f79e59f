"""
Middleware components for the klog backend.

This module contains middleware for security headers, request logging and
CORS handling, and the lifespan handler that starts and stops the
background services: Redis, the file delete consumer and the scheduler.
"""

from asyncio import Event, Task, create_task
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from logging import getLogger
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from klog.clients import RedisClient
from klog.configs import file_logger, settings
from klog.db import async_session_maker, close_db, init_db
from klog.managers import (
    CacheManager,
    FileDeleteConsumer,
    FileDeleteQueue,
    IPRateLimiter,
    Scheduler,
)
from klog.monitoring import bind_request_id, clear_context, configure_logging, get_logger
from klog.services import OrphanSweep
from klog.utils.helpers import host

logger = file_logger(getLogger(__name__))
request_logger = get_logger("klog.requests")

REQUEST_ID_HEADER = "X-Request-ID"


async def connect_redis() -> RedisClient | None:
    """Connect to Redis when enabled; ``None`` when disabled or unreachable."""
    if not settings.REDIS_ENABLED:
        logger.info("Redis disabled, file deletes run in-process")
        return None
    client = RedisClient()
    try:
        await client.connect()
    except RedisError:
        logger.warning("Redis unavailable, continuing without cache and delete stream")
        return None
    return client


async def _join_consumer(task: Task[None]) -> None:
    """Wait for the consumer to stop, logging its failure instead of raising it."""
    try:
        await task
    except Exception:
        logger.exception("File delete consumer ended with an error")


def build_scheduler(stop: Event, limiter: IPRateLimiter) -> Scheduler:
    """Register the periodic maintenance jobs."""
    scheduler = Scheduler(stop)
    sweep = OrphanSweep(async_session_maker)

    async def evict_idle_clients() -> int:
        removed = limiter.evict_idle()
        if removed:
            logger.info(f"Evicted {removed} idle rate limit buckets")
        return removed

    scheduler.add_job("orphan-sweep", settings.CLEANUP_INTERVAL_SECONDS, sweep.execute)
    scheduler.add_job(
        "rate-limit-evict",
        settings.RATE_LIMIT_EVICT_INTERVAL_SECONDS,
        evict_idle_clients,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Manage application startup and shutdown events with service initialization."""
    configure_logging()
    logger.info(f"Starting {app.title}...")

    stop = Event()
    consumer_task: Task[None] | None = None

    try:
        settings.MEDIA_DIR.mkdir(parents=True, exist_ok=True)
        if settings.ENVIRONMENT == "development" or settings.is_sqlite:
            await init_db()

        redis_client = await connect_redis()
        app.state.redis_client = redis_client
        app.state.cache_manager = CacheManager(redis_client)
        queue = FileDeleteQueue(redis_client)
        app.state.file_queue = queue
        limiter = IPRateLimiter()
        app.state.rate_limiter = limiter

        if redis_client is not None:
            consumer = FileDeleteConsumer(redis_client, queue)
            consumer_task = create_task(consumer.run(stop), name="file-delete-consumer")

        scheduler = build_scheduler(stop, limiter)
        if settings.SCHEDULER_ENABLED:
            scheduler.start()

        logger.info("Services initialized successfully")
    except Exception:
        logger.exception("Failed to initialize services")
        raise

    yield

    logger.info(f"Shutting down {app.title}...")
    stop.set()
    try:
        await scheduler.stop()
        if consumer_task is not None:
            await _join_consumer(consumer_task)
        await queue.drain()
        if redis_client is not None:
            await redis_client.disconnect()
        await close_db()
        logger.info("Services cleaned up successfully")
    except Exception:
        logger.exception("Error during service cleanup")


def configure_cors(app: FastAPI) -> None:
    """Configure CORS middleware for the application."""
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    if frontend_url := settings.PRODUCTION_FRONTEND_URL:
        allowed_origins.append(frontend_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Log request and response lines under a request id."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        bind_request_id(request_id)
        start_time = perf_counter()
        try:
            request_logger.info(
                "request",
                method=request.method,
                path=request.url.path,
                client=host(request),
            )
            response = await call_next(request)
            request_logger.info(
                "response",
                status=response.status_code,
                method=request.method,
                path=request.url.path,
                duration_ms=round((perf_counter() - start_time) * 1000, 2),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Add security headers to all responses."""
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response
