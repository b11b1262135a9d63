from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1 import get_api_router
from app.core.config import get_settings
from app.core.db import create_engine, create_session_factory
from app.core.errors import ReconcileError
from app.core.logging import configure_logging, get_logger, level_from_name
from app.core.storage import get_storage
from app.services.reconcile_service import ReconciliationEngine

logger = get_logger(component="api")


async def reconcile_error_handler(request: Request, exc: ReconcileError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log("request_failed", path=request.url.path, kind=exc.kind, **exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    storage = get_storage(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.storage = storage
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.reconciliation_engine = ReconciliationEngine(settings, storage, session_factory)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.add_exception_handler(ReconcileError, reconcile_error_handler)
    app.include_router(get_api_router())
    return app


__all__ = ["create_app", "reconcile_error_handler"]
