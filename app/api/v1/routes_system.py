from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api import deps
from app.core.config import Settings

from .schemas import HealthResponse, ReadinessResponse


router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse, summary="Liveness probe")
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/ready", response_model=ReadinessResponse, summary="Database reachability and active storage backend")
async def ready(
    session_factory: async_sessionmaker[AsyncSession] = Depends(deps.get_session_factory),
    settings: Settings = Depends(deps.get_app_settings),
) -> ReadinessResponse:
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        database = True
    except SQLAlchemyError:
        database = False
    return ReadinessResponse(
        status="ok" if database else "degraded",
        database=database,
        storage_backend=settings.storage_backend,
        bucket=settings.storage_bucket,
    )


__all__ = ["router"]
