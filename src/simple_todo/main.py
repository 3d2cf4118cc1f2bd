"""
Main FastAPI application entry point.

This module sets up the FastAPI app with all middleware, routes, and lifecycle events.
"""

import logging
import time
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import auth_router, healthz_router, metrics_router
from .config import MaskingSettings, Settings, get_settings
from .core.audit import AuditService
from .core.auth_service import AuthService
from .core.exceptions import TodoApiException
from .core.health import HealthChecker
from .core.masking import MaskingEngine, MaskingProcessor
from .core.metrics import MetricsCollector
from .core.provider import AuthProvider, create_provider
from .core.rate_limit import RateLimiter
from .core.security import (
    CallNext,
    get_client_ip,
    https_enforcement_middleware,
    query_sanitization_middleware,
    security_headers_middleware,
)


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    masking: Optional[MaskingSettings] = None,
) -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # Silence the verbose HTTP client loggers used by the provider SDK
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    renderer: Any = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            MaskingProcessor(MaskingEngine(masking)),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_lifespan_handler(settings: Settings, provider: Optional[AuthProvider] = None) -> Any:
    """Create a lifespan handler with access to settings."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        FastAPI lifespan context manager.

        Creates the provider, audit and auth services and the health checker,
        and releases them on shutdown.
        """
        logger = structlog.get_logger(__name__)
        logger.info(
            "Starting Simple Todo API",
            version=app.version,
            environment=settings.environment,
        )

        metrics_collector = MetricsCollector(version=settings.version)
        app.state.metrics = metrics_collector

        auth_provider = provider or create_provider(settings, metrics=metrics_collector)
        await auth_provider.start()
        app.state.provider = auth_provider

        audit_service = AuditService(settings, provider=auth_provider, metrics=metrics_collector)
        app.state.audit_service = audit_service
        app.state.auth_service = AuthService(
            auth_provider, audit_service, settings, metrics=metrics_collector
        )

        health_checker = HealthChecker(settings, auth_provider)
        await health_checker.start()
        app.state.health_checker = health_checker

        try:
            logger.info(
                "Simple Todo API started",
                provider=auth_provider.name,
                https_enforcement=settings.enforce_https,
                rate_limiting=settings.rate_limit_enabled,
                audit_sink=settings.audit_sink,
            )
            yield
        finally:
            logger.info("Shutting down Simple Todo API")

            await health_checker.stop()
            await auth_provider.close()

            logger.info("Simple Todo API shutdown complete")

    return lifespan


def create_rate_limiters(settings: Settings) -> Dict[str, RateLimiter]:
    """Limiters per scope; empty when rate limiting is disabled."""
    if not settings.rate_limit_enabled:
        return {}
    return {
        "auth": RateLimiter(
            window_seconds=settings.security.auth_window_seconds,
            max_requests=settings.security.auth_max_requests,
            scope="auth",
        ),
        "login": RateLimiter(
            window_seconds=settings.security.login_window_seconds,
            max_requests=settings.security.login_max_requests,
            scope="login",
        ),
    }


def error_body(message: str, code: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"message": message, "code": code, "details": details or {}}


def internal_error_response(request: Request, exc: Exception, settings: Settings) -> JSONResponse:
    """Log an unhandled error and build the 500 INTERNAL_ERROR response."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Unhandled error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )

    content = error_body("Internal server error", "INTERNAL_ERROR")
    if settings.is_development:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map exceptions to {message, code, details} JSON bodies."""

    @app.exception_handler(TodoApiException)
    async def todo_api_exception_handler(request: Request, exc: TodoApiException) -> JSONResponse:
        logger = structlog.get_logger(__name__)
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "API error",
            error=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            path=request.url.path,
            method=request.method,
        )

        headers = {}
        if exc.status_code == 429 and "retry_after" in exc.details:
            headers["Retry-After"] = str(exc.details["retry_after"])

        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.code, exc.details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [str(error.get("msg", "Invalid input")) for error in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=error_body("Validation failed", "VALIDATION_ERROR", {"errors": errors}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "message": "Endpoint not found",
                    "code": "NOT_FOUND",
                    "path": request.url.path,
                },
            )

        code = "METHOD_NOT_ALLOWED" if exc.status_code == 405 else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        return internal_error_response(request, exc, settings)


def register_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Install middleware. Starlette runs the last-added middleware first, so
    requests pass HTTPS enforcement, security headers, query trimming, CORS
    and finally request logging, which turns unhandled errors into the 500
    response the outer layers then decorate.
    """
    @app.middleware("http")
    async def log_requests(request: Request, call_next: CallNext) -> Response:
        logger = structlog.get_logger("simple_todo.access")
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            # Handled here so the outer middleware still decorates the 500
            response = internal_error_response(request, e, settings)
        duration = time.perf_counter() - start

        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
            client_ip=get_client_ip(request, trust_proxy=settings.security.trust_proxy),
        )

        metrics = getattr(request.app.state, "metrics", None)
        if metrics:
            metrics.record_request(request.method, endpoint, response.status_code, duration)

        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=settings.security.cors_max_age,
    )
    app.middleware("http")(query_sanitization_middleware())
    app.middleware("http")(security_headers_middleware(content_security_policy=not settings.is_development))
    app.middleware("http")(https_enforcement_middleware(enabled=settings.enforce_https))


def create_app(settings: Optional[Settings] = None, provider: Optional[AuthProvider] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Passing settings (and optionally a provider) lets callers build
    isolated apps; by default the cached settings are used.
    """
    settings = settings or get_settings()

    configure_logging(settings.log_level, settings.render_json_logs, settings.masking)

    app = FastAPI(
        title="Simple Todo API",
        description="Authentication backend for the Simple Todo app",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=create_lifespan_handler(settings, provider),
    )

    app.state.settings = settings
    app.state.rate_limiters = create_rate_limiters(settings)

    register_middleware(app, settings)
    register_exception_handlers(app, settings)

    app.include_router(auth_router, prefix=settings.api_prefix, tags=["auth"])
    app.include_router(healthz_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])

    @app.get("/", include_in_schema=False)
    async def root() -> Dict[str, Any]:
        """Root endpoint with service information."""
        return {
            "message": "Simple Todo API",
            "version": app.version,
            "environment": settings.environment,
            "endpoints": {
                "health": "/health",
                "auth": f"{settings.api_prefix}/auth/*",
            },
            "docs": "/docs",
        }

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.simple_todo.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )
