"""Main FastAPI application"""
import logging
import logging.config
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# --- slowapi imports ---
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from config import Settings
from database import ConnectionManager, ConnectionStatus
from routes import router as api_router
from services.errors import format_validation_errors

BULK_ENDPOINT_PATH = "/api/expenses/bulk"


def build_logging_config(level: str = "INFO") -> dict:
    """Unified logging configuration: one RichHandler shared by uvicorn and the application."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "class": "rich.logging.RichHandler",
                "formatter": "default",
                "level": "DEBUG",
                "rich_tracebacks": True,
                "show_time": True,
                "show_path": False,
                "log_time_format": "%Y-%m-%d %H:%M:%S",
                "markup": False,
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "": {  # Root logger for our application
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
        },
    }


logger = logging.getLogger(__name__)


# --- Middleware for Bulk Payload Size Limit ---
class LimitBulkSizeMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_size: int):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next):
        if request.url.path == BULK_ENDPOINT_PATH:
            content_length_header = request.headers.get("content-length")
            if content_length_header:
                try:
                    content_length = int(content_length_header)
                except ValueError:
                    logger.warning("Bulk request rejected: Invalid Content-Length header.")
                    return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length header."})
                if content_length > self.max_size:
                    logger.warning(f"Bulk request rejected: body size {content_length} exceeds limit {self.max_size}.")
                    return JSONResponse(
                        status_code=413,
                        content={"detail": f"Maximum bulk payload size ({self.max_size / (1024 * 1024):.1f} MB) exceeded."},
                    )
        return await call_next(request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = format_validation_errors(exc)
    logger.warning(f"Request validation failed for {request.method} {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


def create_app(settings: Optional[Settings] = None, connection_manager: Optional[ConnectionManager] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    manager = connection_manager or ConnectionManager(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: connect to MongoDB (retries continue in the background)
        await manager.start()
        yield
        # Shutdown: close MongoDB connection
        await manager.stop()

    app = FastAPI(
        title="Dental Clinic Expense Tracker API",
        description="Records clinic income and expenses, manages consultants and reports category totals.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = manager

    # --- Rate Limiter ---
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # --- Middleware (last added runs first) ---
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(LimitBulkSizeMiddleware, max_size=settings.max_bulk_body_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api", tags=["api"])

    @app.get("/")
    async def root():
        return {"name": app.title, "version": app.version, "status": "running"}

    @app.get("/health")
    async def health_check(request: Request):
        """Service liveness plus the current database connection state."""
        db_manager: ConnectionManager = request.app.state.db
        return {
            "status": "healthy" if db_manager.status == ConnectionStatus.CONNECTED else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": db_manager.describe(),
        }

    return app


settings = Settings.from_env()

# Apply logging configuration directly
logging.config.dictConfig(build_logging_config(settings.log_level))

app = create_app(settings)

if __name__ == "__main__":
    import uvicorn
    # Uvicorn shares the RichHandler configured above
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        log_config=build_logging_config(settings.log_level),
    )
