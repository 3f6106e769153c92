"""Main FastAPI application"""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from pathlib import Path
import logging
import traceback
import time
import uuid

from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

from nutritrack.config import Settings, get_settings
from nutritrack.core.clock import utcnow
from nutritrack.core.cookies import clear_auth_cookies
from nutritrack.core.database import init_db
from nutritrack.core.exceptions import BaseAPIException, DuplicateUserError
from nutritrack.core.metrics import REQUEST_COUNT, REQUEST_LATENCY
from nutritrack.api.v1 import auth, users
from nutritrack.schemas.user import AccessLevel
from nutritrack.services.container import Services, build_services

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure root logging once per process"""
    handlers = [logging.StreamHandler()]
    log_file = settings.get_log_file()
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def _error_body(request: Request, error: str, details=None) -> dict:
    return {
        "success": False,
        "error": error,
        "details": details,
        "path": request.url.path,
        "timestamp": utcnow().isoformat()
    }


def ensure_admin_user(services: Services) -> None:
    """Create the configured admin account if it does not exist yet"""
    settings = services.settings
    if services.users.find_by_identifier(settings.ADMIN_USERNAME):
        return
    try:
        services.accounts.register(
            settings.ADMIN_USERNAME,
            settings.ADMIN_EMAIL,
            settings.ADMIN_PASSWORD,
            access_level=AccessLevel.ADMIN,
        )
        logger.info(f"Created admin user: {settings.ADMIN_USERNAME}")
    except DuplicateUserError:
        logger.warning(f"Admin user {settings.ADMIN_USERNAME} could not be created: email already in use")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application with its own service instances

    Args:
        settings: Settings to use; defaults to the cached environment settings

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None
    )
    app.state.services = build_services(settings)

    # GZip compression for large responses
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # CORS middleware; credentials are needed for the cookie transport
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers + request timing middleware
    @app.middleware("http")
    async def add_headers_and_timing(request: Request, call_next):
        """Add security headers and log slow requests"""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        response.headers["Content-Security-Policy"] = "default-src 'self'"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Request-ID"] = request_id

        REQUEST_COUNT.labels(request.method, request.url.path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(request.method, request.url.path).observe(duration)

        if duration > 1.0:
            logger.warning(
                "Slow request: %s %s took %.2fs request_id=%s",
                request.method,
                request.url.path,
                duration,
                request_id,
            )

        return response

    # Exception handlers
    @app.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        """Handle custom API exceptions"""
        logger.info(
            f"API Exception: {exc.message}",
            extra={
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method
            }
        )

        response = JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.message, exc.details),
            headers=exc.headers
        )
        if exc.clears_session:
            clear_auth_cookies(response)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors"""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        logger.warning(
            f"Validation error: {errors}",
            extra={"path": request.url.path, "method": request.method}
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(request, "Validation failed", errors)
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        """Handle database errors"""
        trace = traceback.format_exc()
        logger.error(
            f"Database error: {str(exc)}",
            extra={"path": request.url.path, "method": request.method, "traceback": trace}
        )

        details = None if settings.is_production else {"traceback": trace}
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, "A database error occurred. Please try again later.", details)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions"""
        trace = traceback.format_exc()
        logger.critical(
            f"Unhandled exception: {str(exc)}",
            extra={"path": request.url.path, "method": request.method, "traceback": trace}
        )

        details = None if settings.is_production else {"traceback": trace}
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, "Something went wrong!", details)
        )

    @app.on_event("startup")
    async def startup_event():
        """Initialize application on startup"""
        settings.validate_security_settings()
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        services = app.state.services
        try:
            init_db(services.engine, settings)
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

        purged = services.ledger.purge_expired()
        if purged:
            logger.info(f"Purged {purged} expired refresh tokens")

        if settings.CREATE_ADMIN_ON_STARTUP:
            ensure_admin_user(services)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        app.state.services.engine.dispose()
        logger.info(f"Shutting down {settings.APP_NAME}")

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        db_ok = True
        db_error = None
        try:
            with app.state.services.session_factory() as db:
                db.execute(text("SELECT 1"))
        except Exception as exc:
            db_ok = False
            db_error = str(exc)

        return {
            "status": "healthy" if db_ok else "degraded",
            "version": settings.APP_VERSION,
            "timestamp": utcnow().isoformat(),
            "readiness": {"database": {"ok": db_ok, "error": db_error}},
        }

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/api/docs" if settings.DEBUG else "disabled"
        }

    # Include routers
    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])

    return app


if __name__ == "__main__":
    import uvicorn
    _settings = get_settings()
    uvicorn.run(
        "nutritrack.main:create_app",
        factory=True,
        host=_settings.HOST,
        port=_settings.PORT,
        reload=_settings.DEBUG,
        workers=1 if _settings.DEBUG else _settings.WORKERS
    )
