from __future__ import annotations

from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import MediaRecord, MediaType


class MediaTracker:
    """Persistence for ``MediaRecord`` rows binding an upload to its poster."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_upload(
        self,
        *,
        file_path: str,
        poster_path: str | None,
        folder: str,
        type: MediaType,
    ) -> MediaRecord:
        record = MediaRecord(file_path=file_path, poster_path=poster_path, folder=folder, type=type)
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def find_by_primary_paths(self, paths: Iterable[str]) -> list[MediaRecord]:
        wanted = list(dict.fromkeys(paths))
        if not wanted:
            return []
        stmt = select(MediaRecord).where(MediaRecord.file_path.in_(wanted))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_posters_referenced(self) -> set[str]:
        stmt = select(MediaRecord.poster_path).where(MediaRecord.poster_path.is_not(None))
        result = await self.session.execute(stmt)
        return {path for path in result.scalars().all() if path}

    async def delete_by_primary_paths(self, paths: Iterable[str]) -> int:
        wanted = list(dict.fromkeys(paths))
        if not wanted:
            return 0
        result = await self.session.execute(delete(MediaRecord).where(MediaRecord.file_path.in_(wanted)))
        await self.session.commit()
        return result.rowcount or 0


__all__ = ["MediaTracker"]
