"""klog Backend - blog API with cursor pagination and deferred media cleanup."""

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse, Response
from redis.exceptions import RedisError
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from klog.configs import settings
from klog.errors import (
    DatabaseError,
    MediaError,
    PaginationError,
    RateLimitExceededError,
    database_exception_handler,
    media_exception_handler,
    pagination_exception_handler,
    rate_limit_exception_handler,
)
from klog.middleware import (
    LoggingMiddleware,
    SecurityHeadersMiddleware,
    configure_cors,
    lifespan,
)
from klog.monitoring import generate_metrics_response, setup_prometheus
from klog.routes import media_router, posts_router
from klog.utils.helpers import today_str

app = FastAPI(
    title=settings.APP_NAME,
    description="klog Backend API",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    swagger_ui_parameters={"docExpansion": "none", "operationsSorter": "method"},
)

configure_cors(app)

app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

for router in (posts_router, media_router):
    app.include_router(router)

# Every klog error family renders the same {"detail", "code"} body
ERROR_HANDLERS = [
    (PaginationError, pagination_exception_handler),
    (DatabaseError, database_exception_handler),
    (MediaError, media_exception_handler),
    (RateLimitExceededError, rate_limit_exception_handler),
]

for exc_type, handler in ERROR_HANDLERS:
    app.add_exception_handler(exc_type, handler)

setup_prometheus(app)


@app.get(
    "/health",
    tags=["🩺 Health"],
    summary="Health check endpoint",
    response_class=ORJSONResponse,
    operation_id="health_check",
)
async def health_check(request: Request) -> ORJSONResponse:
    """
    Health check endpoint.

    Reports which optional services the process started with.
    """
    state = request.app.state
    queue = getattr(state, "file_queue", None)
    redis = "disabled"
    if (client := getattr(state, "redis_client", None)) is not None:
        try:
            redis = "connected" if await client.ping() else "unreachable"
        except RedisError:
            redis = "unreachable"
    return ORJSONResponse(
        {
            "version": app.version,
            "status": "ok",
            "timestamp": today_str(),
            "services": {
                "redis": redis,
                "file_delete_fallback_pending": queue.pending if queue else 0,
            },
        },
    )


@app.get(
    "/metrics",
    tags=["📈 Metrics"],
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def get_metrics() -> Response:
    body, content_type = generate_metrics_response()
    return Response(content=body, media_type=content_type)
