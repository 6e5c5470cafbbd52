"""
main.py
FastAPI application entry point.
Registers all routers, middleware, exception handlers and the lifespan
that owns the database, Redis and live-connection handles.
"""

import contextvars
import json
import logging
import os
import sys
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from logging import LogRecord

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.database import Database
from config.redis_client import close_redis, init_redis
from config.settings import settings
from services.realtime.manager import ConnectionManager
from shared.middleware.rate_limit import RateLimit
from shared.utils.exceptions import AppError, RateLimitError

# Service routers
from services.admin.router import router as admin_router
from services.analytics.router import router as analytics_router
from services.application.router import router as application_router
from services.auth.router import router as auth_router
from services.booking.router import router as booking_router
from services.calendar.router import router as calendar_router
from services.contract.router import router as contract_router
from services.event.router import router as event_router
from services.messaging.router import router as messaging_router
from services.notification.router import router as notification_router
from services.portfolio.router import router as portfolio_router
from services.realtime.router import router as realtime_router
from services.review.router import router as review_router
from services.saved.router import router as saved_router
from services.search.router import router as search_router
from services.upload.router import router as upload_router
from services.user.router import router as user_router


# ── Logging ──────────────────────────────────────────────────

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(),
            "instance": os.getenv("INSTANCE_NAME", "unknown"),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)


logger = logging.getLogger(__name__)


# ── Lifespan (startup/shutdown) ───────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle handler."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.APP_ENV})")

    database = app.state.db or Database.from_settings()
    try:
        await database.connect_with_retry()
    except Exception as e:
        logger.critical(f"Database unreachable after {settings.DB_CONNECT_MAX_ATTEMPTS} attempts: {e}")
        sys.exit(1)
    if not settings.is_production:
        await database.create_all()
    app.state.db = database
    logger.info("Database connected")

    app.state.redis = await init_redis()

    yield

    await close_redis(app.state.redis)
    await database.close()
    logger.info("Server shutdown complete")


# ── Error envelope ────────────────────────────────────────────

def error_response(status_code: int, message: str, error: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message, "error": error}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        response = error_response(exc.status_code, exc.message, exc.error, details=exc.details)
        if isinstance(exc, RateLimitError):
            response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", "VALIDATION_ERROR", details=details)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        return _internal_error(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler. Never expose stack traces in production."""
        return _internal_error(request, exc)


def _internal_error(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.error(f"[{request_id}] Unhandled {type(exc).__name__}: {exc}", exc_info=exc)
    if settings.is_production:
        return error_response(500, "Internal server error", "OPERATION_FAILED", request_id=request_id)
    return error_response(
        500,
        str(exc) or "Internal server error",
        "OPERATION_FAILED",
        request_id=request_id,
        stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )


# ── App Factory ───────────────────────────────────────────────

def create_app(database: Database = None) -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## CollabBridge API

Marketplace backend connecting event planners with creative professionals:
- **Auth**: email/password or Firebase ID token → app JWT + rotating refresh tokens
- **Events & Applications**: planners publish events, professionals apply
- **Bookings & Reviews**: role-aware booking lifecycle, reviews after completion
- **Messaging**: direct conversations with a WebSocket live channel at `/api/ws`
- **Search, Analytics, Portfolio, Uploads, Admin**

All protected endpoints require `Authorization: Bearer <access_token>`.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.db = database
    app.state.redis = None
    app.state.realtime = ConnectionManager()

    # ── Middleware (outermost first) ─────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add unique X-Request-ID to every request for distributed tracing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{round((time.perf_counter() - start) * 1000, 2)}ms"
        return response

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        checks = {"status": "ok", "version": settings.APP_VERSION, "environment": settings.APP_ENV}

        try:
            await request.app.state.db.ping()
            checks["database"] = "ok"
        except Exception as e:
            logger.warning(f"Health check: database error: {e}")
            checks["database"] = "error"
            checks["status"] = "degraded"

        redis = request.app.state.redis
        if redis is None:
            checks["redis"] = "disabled"
        else:
            try:
                await redis.ping()
                checks["redis"] = "ok"
            except Exception as e:
                logger.warning(f"Health check: redis error: {e}")
                checks["redis"] = "error"
                checks["status"] = "degraded"

        checks["connections"] = request.app.state.realtime.online_count()
        status_code = 200 if checks["status"] == "ok" else 503
        return JSONResponse(content=checks, status_code=status_code)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"name": settings.APP_NAME, "version": settings.APP_VERSION, "docs": "/docs", "health": "/health"}

    # Register all service routers
    api = APIRouter(prefix="/api", dependencies=[Depends(RateLimit("global"))])
    for router in (
        auth_router,
        user_router,
        saved_router,
        event_router,
        application_router,
        booking_router,
        calendar_router,
        contract_router,
        review_router,
        messaging_router,
        notification_router,
        search_router,
        analytics_router,
        portfolio_router,
        upload_router,
        admin_router,
    ):
        api.include_router(router)
    app.include_router(api)
    app.include_router(realtime_router, prefix="/api")

    # ── Prometheus Metrics ─────────────────────────────────────────
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", tags=["Monitoring"])

    return app


# ── Entry Point ───────────────────────────────────────────────

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips=settings.FORWARDED_ALLOW_IPS,
    )
