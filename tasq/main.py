from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from tasq.api.realtime import router as realtime_router
from tasq.api.v1.router import router as api_v1_router
from tasq.core.cache import CacheService
from tasq.core.config import settings as app_settings
from tasq.core.database import AsyncSessionLocal
from tasq.core.exceptions import (
    AlertNotFoundError,
    SessionNotFoundError,
    TaskNotFoundError,
    TasqError,
    UserNotFoundError,
)
from tasq.core.rate_limit import limiter
from tasq.dependencies import get_redis_client
from tasq.services.email_dispatcher import EmailDispatcher
from tasq.services.notification_hub import NotificationHub, build_session_factory
from tasq.services.notification_ledger import NotificationLedger, build_ledger_store
from tasq.services.realtime import AlertChannel

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the notification engine and tear every session down on exit."""
    cache = CacheService(await get_redis_client())
    channel = AlertChannel()
    email = EmailDispatcher()
    ledger = NotificationLedger(build_ledger_store(cache))
    hub = NotificationHub(
        channel,
        build_session_factory(
            AsyncSessionLocal, ledger=ledger, channel=channel, email=email
        ),
    )
    app.state.notification_hub = hub
    app.state.email_dispatcher = email
    logger.info("Notification engine ready (redis=%s)", cache.is_available)
    yield
    # Shutdown: stop timers, close sockets, let in-flight emails finish
    await hub.close_all()
    await email.drain()
    await cache.close()
    logger.info("Notification engine stopped")


app = FastAPI(
    title="tasq.one Notification Service",
    description="Deadline reminders, per-day deadline alerts and real-time task alerts",
    version="0.1.0",
    lifespan=lifespan,
)

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware – restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)
app.include_router(realtime_router)


# Missing resources share one handler; "type" tells the client which one
_NOT_FOUND_TYPES = {
    UserNotFoundError: "user_not_found",
    TaskNotFoundError: "task_not_found",
    SessionNotFoundError: "session_not_found",
    AlertNotFoundError: "alert_not_found",
}


async def not_found_handler(request: Request, exc: TasqError):
    logger.warning("%s: %s", type(exc).__name__, exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": _NOT_FOUND_TYPES[type(exc)]},
    )


for _exc_class in _NOT_FOUND_TYPES:
    app.add_exception_handler(_exc_class, not_found_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": exc.errors(),
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
