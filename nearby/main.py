"""Application factory, lifecycle and cross-cutting HTTP concerns"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator
import logging
import time
import uuid

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nearby.api.v1 import auth, favorites, locations, services, users
from nearby.config import settings
from nearby.core.cache import cache
from nearby.core.database import SessionLocal, get_db, init_db
from nearby.core.exceptions import BaseAPIException
from nearby.schemas.response import ErrorResponse
from nearby.services.user_service import user_service

Path(settings.get_log_file()).parent.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.get_log_file()),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "nearby_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "nearby_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
CACHE_UP_GAUGE = Gauge("nearby_cache_up", "Cache reachability (1 reachable, 0 unreachable)")
CACHE_ERRORS_GAUGE = Gauge("nearby_cache_errors", "Cache operations that failed since startup")

SLOW_REQUEST_SECONDS = 1.0

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

ROUTERS = (
    (auth.router, "auth", "Authentication"),
    (users.router, "users", "Users"),
    (services.router, "services", "Services"),
    (locations.router, "locations", "Locations"),
    (favorites.router, "favorites", "Favorites"),
)


def _error(request: Request, status_code: int, message: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error=message, details=details, path=request.url.path)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _route_path(request: Request) -> str:
    # Templated path keeps metric label cardinality bounded
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def _bootstrap_admin() -> None:
    db = SessionLocal()
    try:
        user_service.ensure_admin(db)
    except SQLAlchemyError as exc:
        logger.error(f"Failed to create admin user: {exc}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Validate settings, create tables and the bootstrap admin, then serve"""
    settings.validate_security_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    logger.info(f"Cache backend: {cache.name}")

    try:
        init_db()
    except SQLAlchemyError as exc:
        logger.error(f"Failed to initialize database: {exc}")
        raise

    if settings.CREATE_ADMIN_ON_STARTUP:
        _bootstrap_admin()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")


def register_middleware(app: FastAPI) -> None:
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def observe_request(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        response.headers.update(SECURITY_HEADERS)
        response.headers["X-Request-ID"] = request_id

        path = _route_path(request)
        REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(elapsed)
        if elapsed > SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow request {request.method} {path}: {elapsed:.2f}s request_id={request_id}")
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Every error leaves as an ErrorResponse envelope"""

    @app.exception_handler(BaseAPIException)
    async def handle_api_error(request: Request, exc: BaseAPIException):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return _error(request, exc.status_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        logger.warning(f"Validation failed on {request.method} {request.url.path}: {errors}")
        return _error(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", errors)

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Database error on {request.method} {request.url.path}")
        return _error(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "A database error occurred. Please try again later.",
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.critical(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
        return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.")


def register_system_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health_check(db: Session = Depends(get_db)):
        """Readiness of the database and the cache"""
        db_error = None
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            db_error = str(exc)

        cache_ok = cache.ping()
        cache_stats = cache.stats()
        CACHE_UP_GAUGE.set(1 if cache_ok else 0)
        CACHE_ERRORS_GAUGE.set(cache_stats.get("errors", 0))

        return {
            "status": "healthy" if db_error is None and cache_ok else "degraded",
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "readiness": {
                "database": {"ok": db_error is None, "error": db_error},
                "cache": {"ok": cache_ok, **cache_stats},
            },
        }

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/api/docs" if settings.DEBUG else "disabled",
        }


def create_app() -> FastAPI:
    """Build the API application with middleware, handlers and routers"""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    register_middleware(app)
    register_exception_handlers(app)
    register_system_routes(app)
    for router, name, tag in ROUTERS:
        app.include_router(router, prefix=f"/api/v1/{name}", tags=[tag])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "nearby.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )
