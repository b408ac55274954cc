"""
credgate.api.app

FastAPI app factory for the credgate service.

Responsibilities:
- Validate startup configuration and build the FastAPI application.
- Initialize and dispose shared infrastructure (DB engines, session factories,
  audit sink registry).
- Seed roles and the initial administrator before traffic is accepted.
- Route access denials through the disambiguator.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from credgate import __version__
from credgate.api.routers.account import decision_response
from credgate.api.routers.account import router as account_router
from credgate.api.routers.audit import router as audit_router
from credgate.api.routers.health import router as health_router
from credgate.api.routers.users import router as users_router
from credgate.audit.sink import AuditContext, AuditSinkRegistry
from credgate.audit.writer import SqlAuditWriter
from credgate.db.init_db import init_db
from credgate.db.session import create_engine, create_sessionmaker
from credgate.errors import AccessDenied
from credgate.observability.logging import configure_logging, get_logger
from credgate.observability.middleware import RequestContextMiddleware
from credgate.services.access import AccessDenialDisambiguator
from credgate.services.bootstrap import ensure_seeded
from credgate.settings import Settings, get_settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)
    # Missing bindings are fatal here, never per request.
    settings.require_startup()

    app = FastAPI(
        title="credgate",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    # Every `Depends(get_settings)` sees the settings this app was built with.
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(account_router)
    app.include_router(audit_router)
    app.include_router(users_router)

    @app.exception_handler(AccessDenied)
    async def _access_denied(request: Request, exc: AccessDenied) -> Response:
        disambiguator = AccessDenialDisambiguator(settings=settings, audit=app.state.audit)
        decision = await disambiguator.check(
            exc.path, exc.principal, context=AuditContext(path=request.url.path)
        )
        return decision_response(decision)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log.error("unhandled_exception", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal error", "redirect": settings.default_error_page},
        )

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        audit_engine = create_engine(settings, audit=True)
        app.state.engine = engine
        app.state.audit_engine = audit_engine
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.audit_sessionmaker = create_sessionmaker(audit_engine)
        app.state.audit = AuditSinkRegistry(
            writer=SqlAuditWriter(app.state.audit_sessionmaker),
            namespace=settings.audit_namespace,
        )
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod should use Alembic migrations.
            await init_db(engine, audit_engine)
            if settings.seed_on_startup:
                # Deliberately blocking: seeding completes before the first request.
                ensure_seeded(
                    settings,
                    settings.admin_role,
                    [settings.database_role],
                    settings.initial_user,
                    settings.initial_password,
                )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        for name in ("engine", "audit_engine"):
            engine = getattr(app.state, name, None)
            if engine is not None:
                await engine.dispose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# This file is intentionally small: app composition stays here; login, rotation
# and audit rules stay in services.
