"""
FastAPI application factory.

create_app() reads Settings (failing fast when the signing secret is
missing), wires the components into a Container on app.state and mounts the
auth and protected routers.
"""
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authapi import __version__
from authapi.auth.pipeline import charged_rate_limit
from authapi.auth.router import router as auth_router
from authapi.auth.store import CredentialStore, SqlCredentialStore
from authapi.base_service import setup_logging
from authapi.config import Settings
from authapi.container import Container, client_address
from authapi.errors import ServiceError
from authapi.protected.router import router as protected_router
from authapi.responses import (
    CONTENT_SECURITY_POLICY,
    SECURITY_HEADERS,
    error_response,
    rate_limit_headers,
)

APP_NAME = "JWT Authentication API"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the credential store on startup and release it on shutdown."""
    container: Container = app.state.container
    container.audit.log_event("service.startup", {
        "environment": container.settings.environment,
        "store": type(container.store).__name__,
    })
    if isinstance(container.store, SqlCredentialStore):
        await container.store.create_tables()
    if container.settings.seed_demo_users:
        await container.users.seed_demo_users()
    yield
    container.audit.log_event("service.shutdown", {})
    await container.store.close()


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[CredentialStore] = None,
    clock: Optional[Callable[[], float]] = None,
    limiter_clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; read from the environment when omitted
        store: Credential store override
        clock: Wall clock used by the token codec
        limiter_clock: Monotonic clock used by the rate limiter

    Raises:
        ConfigurationError: If required configuration is missing
    """
    if settings is None:
        settings = Settings.from_env()
    setup_logging(settings.log_level)

    container = Container.build(settings, store=store, clock=clock, limiter_clock=limiter_clock)

    app = FastAPI(
        title=APP_NAME,
        description="Username/password login issuing signed, time-bounded bearer tokens",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        container.audit.log_api(
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
            client_address(request),
        )
        return response

    docs_paths = {app.docs_url, app.redoc_url, app.swagger_ui_oauth2_redirect_url}

    @app.middleware("http")
    async def response_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        # The interactive docs load their assets from a CDN
        if request.url.path not in docs_paths:
            response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
        status = charged_rate_limit(request)
        if status is not None:
            response.headers.update(rate_limit_headers(status))
        return response

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            container.audit.logger.warning(
                "Route not found: %s %s from %s",
                request.method, request.url.path, client_address(request),
            )
            return JSONResponse(status_code=404, content={"message": "Route not found"})
        return JSONResponse(
            status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        container.audit.log_error(exc, context={
            "method": request.method,
            "url": request.url.path,
            "ip": client_address(request),
        })
        return JSONResponse(status_code=500, content={
            "message": "Internal server error",
            "error": str(exc) if settings.is_development else "Something went wrong",
        })

    app.include_router(auth_router, prefix="/auth")
    app.include_router(protected_router, prefix="/protected")

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint returning API information."""
        return {
            "name": APP_NAME,
            "version": __version__,
            "services": ["auth", "protected"],
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        """Overall system health check."""
        return {
            "status": "ok",
            "services": {
                "auth": "online",
                "protected": "online",
            },
        }

    return app
