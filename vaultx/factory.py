"""Builds the VaultX FastAPI application."""

import uuid
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .api import ROUTERS
from .api.dependencies import init_dependencies
from .config import AppConfig, get_config, set_config, validate_config
from .core.action_registry import ActionRegistry, get_action_registry
from .core.auth import AuthProvider, HttpAuthProvider
from .core.enrichment import WebsiteEnricher
from .core.exceptions import VaultXError, create_error_response
from .core.health import health_checker
from .core.logging import setup_logging, get_logger
from .core.middleware import (
    REQUEST_ID_HEADER,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    PerformanceMonitoringMiddleware,
)
from .storage.database import create_tables, get_session_factory
from .storage.migrations import run_migrations

logger = get_logger(__name__)


def create_auth_provider(config: AppConfig) -> Optional[AuthProvider]:
    """HTTP client for the hosted auth service, or None when it is not configured."""
    if not config.auth_configured:
        logger.warning("Auth provider not configured; authenticated endpoints will return 401")
        return None
    return HttpAuthProvider(
        base_url=config.auth_url,
        anon_key=config.auth_anon_key,
        service_role_key=config.auth_service_role_key,
        timeout=config.outbound_timeout
    )


def setup_health_checks(action_registry: ActionRegistry, auth_provider: Optional[AuthProvider]) -> None:
    """Register the database, action registry and auth provider checks."""

    def database():
        session = get_session_factory()()
        try:
            session.execute(text("SELECT 1"))
        finally:
            session.close()
        return "Database reachable"

    def actions():
        return {"message": "Action registry loaded", "registered_actions": len(action_registry.list_actions())}

    def auth():
        # Running without auth is allowed; only user endpoints are affected
        return {
            "message": "Auth provider configured" if auth_provider else "Auth provider not configured",
            "configured": auth_provider is not None
        }

    health_checker.register_check("database", database, timeout=5.0)
    health_checker.register_check("action_registry", actions, timeout=2.0)
    health_checker.register_check("auth_provider", auth, timeout=2.0)


def prepare_database() -> None:
    """Create missing tables, then add indexes. Index failures are logged, not fatal."""
    try:
        create_tables()
    except Exception as e:
        logger.error(f"Could not create database tables: {e}")
        raise

    try:
        run_migrations()
    except Exception as e:
        logger.warning(f"Index migrations failed, continuing without them: {e}")


def add_exception_handlers(app: FastAPI) -> None:
    """Render VaultXError as the JSON error body with its HTTP status."""

    @app.exception_handler(VaultXError)
    async def handle_vaultx_error(request: Request, exc: VaultXError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}")

        headers = {REQUEST_ID_HEADER: getattr(request.state, "request_id", None) or str(uuid.uuid4())}
        if exc.details.get("retry_after"):
            headers["Retry-After"] = str(exc.details["retry_after"])
        return JSONResponse(status_code=exc.status_code, content=create_error_response(exc), headers=headers)


def configure_middleware(app: FastAPI, config: AppConfig) -> None:
    # Starlette runs the last added middleware first
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_methods=config.cors_methods,
            allow_credentials=True,
            allow_headers=["*"],
        )
    if config.enable_performance_monitoring:
        app.add_middleware(PerformanceMonitoringMiddleware, slow_request_threshold=config.slow_request_threshold)
        app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the application.

    Components that need no IO (auth client, action registry, enricher,
    health checks) are wired immediately so the app can be served by a
    TestClient without running its lifespan. Logging setup, table creation
    and the startup health report happen in the lifespan.
    """
    config = config or get_config()
    set_config(config)
    for warning in validate_config(config):
        logger.warning(f"Configuration warning: {warning}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.log_structured,
            max_size=config.log_max_size,
            backup_count=config.log_backup_count
        )
        logger.info(f"{config.app_name} {config.app_version} starting")
        prepare_database()

        report = await health_checker.run_all_checks()
        logger.info(f"Startup health: {report['overall_status']}")
        yield
        logger.info(f"{config.app_name} stopped")

    app = FastAPI(
        title=config.app_name,
        description="Directory of AI tools with reviews, a blog and admin automation",
        version=config.app_version,
        debug=config.debug,
        lifespan=lifespan
    )

    app.state.config = config
    app.state.auth_provider = create_auth_provider(config)
    app.state.action_registry = get_action_registry()
    app.state.enricher = WebsiteEnricher(timeout=config.outbound_timeout)

    init_dependencies(
        config=config,
        auth_provider=app.state.auth_provider,
        action_registry=app.state.action_registry,
        enricher=app.state.enricher
    )
    setup_health_checks(app.state.action_registry, app.state.auth_provider)

    configure_middleware(app, config)
    add_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    return app
