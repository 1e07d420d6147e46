"""
authcore - user authentication for JSON web APIs

Application factory with security hardening. Configuration is read once,
by the caller or by `Settings.from_env()`, and everything built from it is
stored on `app.state`.
"""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from authcore import __version__
from authcore.api.v1.api import api_router
from authcore.auth.jwt import TokenIssuer
from authcore.core.config import Settings
from authcore.core.database import (
    check_db,
    close_db,
    create_engine,
    create_session_maker,
    init_db,
)
from authcore.core.errors import AuthError, FieldError
from authcore.core.logger import request_id_var, setup_logging
from authcore.repositories import SQLAlchemyUserStore, UserStore
from authcore.schemas.common import HealthResponse
from authcore.services import AuthService, bootstrap_admin_if_needed

logger = logging.getLogger(__name__)

VERSION = __version__


# =============================================================================
# Security Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        # JSON only, nothing to load
        if not request.url.path.startswith(("/docs", "/redoc")):
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID for tracing and log correlation."""

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID") or secrets.token_urlsafe(8)
        request.state.request_id = request_id
        ctx_token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(ctx_token)

        response.headers["X-Request-ID"] = request_id
        return response


# =============================================================================
# Error Handlers
# =============================================================================

def _error_body(detail: str, error_code: str, errors: Optional[list[FieldError]] = None) -> dict:
    body = {"detail": detail, "error_code": error_code}
    if errors:
        body["errors"] = [e.to_dict() for e in errors]
    return body


async def auth_error_handler(request: Request, exc: AuthError):
    """Map the typed error taxonomy to status codes and caller-safe bodies."""
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    detail = exc.message
    if exc.status_code >= 500:
        logger.error(
            "Request failed: %s", exc.message,
            exc_info=exc,
            extra={"error_code": exc.error_code, "path": request.url.path},
        )
        detail = AuthError.default_message

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(detail, exc.error_code, getattr(exc, "errors", None)),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Unparseable bodies are the caller's fault: 400 with the offending fields."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append(FieldError(".".join(loc) or "body", err.get("msg", "Invalid value")))

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("Request body is invalid", "validation_error", errors),
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to prevent information leakage."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.exception(
        "Unhandled exception",
        extra={"request_id": request_id, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An internal error occurred",
            "request_id": request_id,
        },
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None, store: Optional[UserStore] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Process configuration; read from the environment when omitted
        store: User store; a SQLAlchemy store on `settings.database_url` when omitted
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_json)

    if settings.jwt_secret_generated:
        logger.warning("JWT_SECRET not set, using a generated secret. Tokens will not survive a restart.")

    engine = None
    if store is None:
        engine = create_engine(settings)
        store = SQLAlchemyUserStore(create_session_maker(engine))

    tokens = TokenIssuer.from_settings(settings)
    auth_service = AuthService(
        store,
        tokens,
        refresh_token_ttl=settings.refresh_token_ttl,
        reset_token_ttl=settings.reset_token_ttl,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown events."""
        logger.info("Starting authcore", extra={"app_env": settings.app_env})

        if engine is not None:
            await init_db(engine)
            logger.info("Database initialized")

        await bootstrap_admin_if_needed(store, settings)

        yield

        logger.info("Shutting down authcore")
        await store.close()
        if engine is not None:
            await close_db(engine)

    app = FastAPI(
        title="authcore",
        version=VERSION,
        description="User registration, login and role-gated access",
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
        openapi_url="/openapi.json" if settings.enable_docs else None,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.engine = engine
    app.state.token_issuer = tokens
    app.state.auth_service = auth_service

    # Order matters: last added runs first.
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
            expose_headers=["X-Request-ID"],
        )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        if engine is None:
            return HealthResponse(status="healthy", database="in_memory")

        db_status = "healthy"
        try:
            await check_db(engine)
        except Exception:
            logger.exception("Database health check failed")
            db_status = "unhealthy"

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            database=db_status,
        )

    app.include_router(api_router)
    return app


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "authcore.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
