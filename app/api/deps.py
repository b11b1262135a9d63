from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import AuthContext, require_admin
from app.core.config import Settings, get_settings
from app.core.storage import Storage
from app.services.reconcile_service import ReconciliationEngine


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover - defensive
        raise RuntimeError("session_factory_not_configured")
    return session_factory


def get_storage(request: Request) -> Storage:
    storage: Storage = request.app.state.storage
    return storage


def get_app_settings() -> Settings:
    return get_settings()


def get_reconciliation_engine(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> ReconciliationEngine:
    engine = getattr(request.app.state, "reconciliation_engine", None)
    if isinstance(engine, ReconciliationEngine):
        return engine
    return ReconciliationEngine(settings, storage, session_factory)


EngineDependency = Annotated[ReconciliationEngine, Depends(get_reconciliation_engine)]
AdminDependency = Annotated[AuthContext, Depends(require_admin)]


__all__ = [
    "get_session_factory",
    "get_storage",
    "get_app_settings",
    "get_reconciliation_engine",
    "EngineDependency",
    "AdminDependency",
]
