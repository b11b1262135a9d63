from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db import Base
from app.db.models import BlogPost, PortfolioItem, Service, Testimonial

CONTENT_KINDS: Mapping[str, type[Base]] = {
    "services": Service,
    "portfolio": PortfolioItem,
    "blog": BlogPost,
    "testimonials": Testimonial,
}


class ContentStore(ABC):
    """Read-only view of the asset references held by content entities."""

    @property
    @abstractmethod
    def kinds(self) -> tuple[str, ...]: ...

    @abstractmethod
    async def list_asset_paths(self, kind: str) -> list[str | None]: ...


class SqlContentStore(ContentStore):
    """Reads ``image_url`` from every row of each content table, published or not.

    Each query opens its own session so the per-kind reads can run
    concurrently.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        models: Mapping[str, type[Base]] = CONTENT_KINDS,
    ):
        self.session_factory = session_factory
        self.models = dict(models)

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(self.models)

    async def list_asset_paths(self, kind: str) -> list[str | None]:
        model = self.models.get(kind)
        if model is None:
            raise LookupError(kind)
        async with self.session_factory() as session:
            result = await session.execute(select(model.image_url))  # type: ignore[attr-defined]
            return list(result.scalars().all())


__all__ = ["CONTENT_KINDS", "ContentStore", "SqlContentStore"]
