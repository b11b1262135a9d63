from __future__ import annotations

import asyncio
import mimetypes
import time
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Callable, Iterable
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.errors import DerivedAssetGenerationFailed, InvalidRequest, StorageUnavailable
from app.core.logging import get_logger
from app.core.storage import Storage, call_storage
from app.db.models import MediaRecord, MediaType
from app.ingest.posters import generate_poster
from app.reconcile import MediaTracker, StorageListing, collect_references, guess_poster, list_storage, normalize_asset_path
from app.reconcile.listing import list_folder
from app.services.content_store import ContentStore, SqlContentStore

PosterGenerator = Callable[..., bytes]


@dataclass(slots=True)
class AuditReport:
    linked: list[str]
    orphan: list[str]
    missing: list[str]
    degraded_folders: list[str] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        return {"linked": len(self.linked), "orphan": len(self.orphan), "missing": len(self.missing)}


@dataclass(slots=True)
class DeletionResult:
    deleted: list[str]


@dataclass(slots=True)
class PosterCleanupResult:
    files: list[str]

    @property
    def deleted(self) -> int:
        return len(self.files)


@dataclass(slots=True)
class IngestResult:
    record: MediaRecord
    poster_error: str | None = None


def classify(references: set[str], stored: set[str]) -> AuditReport:
    """Split the two key sets into linked, orphan and missing."""
    linked: list[str] = []
    orphan: list[str] = []
    for path in sorted(stored):
        if path in references:
            linked.append(path)
        else:
            orphan.append(path)
    missing = sorted(path for path in references if path not in stored)
    return AuditReport(linked=linked, orphan=orphan, missing=missing)


class ReconciliationEngine:
    def __init__(
        self,
        settings: Settings,
        storage: Storage,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        content_store: ContentStore | None = None,
        poster_generator: PosterGenerator = generate_poster,
    ):
        self.settings = settings
        self.storage = storage
        self.session_factory = session_factory
        self.content_store = content_store or SqlContentStore(session_factory)
        self.poster_generator = poster_generator
        self.logger = get_logger(component="reconciliation_engine")

    async def list_files(self) -> StorageListing:
        return await list_storage(
            self.storage,
            self.settings.scan_folders,
            page_size=self.settings.list_page_size,
            timeout=self.settings.storage_timeout_s,
        )

    async def audit(self) -> AuditReport:
        references_task = asyncio.ensure_future(
            collect_references(self.content_store, bucket=self.settings.storage_bucket)
        )
        listing_task = asyncio.ensure_future(self.list_files())
        try:
            references, listing = await asyncio.gather(references_task, listing_task)
        except BaseException:
            references_task.cancel()
            listing_task.cancel()
            raise

        report = classify(references, listing.paths)
        report.degraded_folders = list(listing.degraded_folders)
        self.logger.info("storage_audit_completed", **report.summary, degraded_folders=report.degraded_folders)
        return report

    async def delete_files(self, paths: Iterable[str] | None) -> DeletionResult:
        """Remove the requested objects together with their posters.

        Posters are found two ways: the fixed ``folder/posters/name.jpg``
        guess for every path (uploads that predate media records) and the
        ``poster_path`` of matching media records. Records are deleted only
        once the storage removal returned without error.
        """
        requested = self._validate_paths(paths)

        async with self.session_factory() as session:
            records = await MediaTracker(session).find_by_primary_paths(requested)

        guessed = [guess_poster(path, self.settings.posters_subfolder) for path in requested]
        recorded = [record.poster_path for record in records if record.poster_path]
        targets = list(dict.fromkeys([*requested, *guessed, *recorded]))

        await call_storage(
            "remove",
            ",".join(sorted({path.split("/", 1)[0] for path in targets})),
            self.storage.remove,
            targets,
            timeout=self.settings.storage_timeout_s,
        )

        async with self.session_factory() as session:
            removed_rows = await MediaTracker(session).delete_by_primary_paths(requested)

        self.logger.info(
            "storage_files_deleted",
            requested=len(requested),
            targeted=len(targets),
            media_records_removed=removed_rows,
        )
        return DeletionResult(deleted=targets)

    async def cleanup_orphan_posters(self) -> PosterCleanupResult:
        folder = self.settings.posters_folder
        listed = await list_folder(
            self.storage,
            folder,
            page_size=self.settings.list_page_size,
            timeout=self.settings.storage_timeout_s,
        )
        async with self.session_factory() as session:
            referenced = await MediaTracker(session).find_posters_referenced()

        orphans = sorted(path for path in set(listed) if path not in referenced)
        if orphans:
            await call_storage(
                "remove",
                folder,
                self.storage.remove,
                orphans,
                timeout=self.settings.storage_timeout_s,
            )
        self.logger.info("orphan_posters_removed", folder=folder, count=len(orphans))
        return PosterCleanupResult(files=orphans)

    async def ingest_upload(
        self,
        payload: bytes,
        mime_type: str | None,
        folder: str | None,
        *,
        filename: str | None = None,
    ) -> IngestResult:
        folder, media_type = self._validate_upload(payload, mime_type, folder)
        extension = self._extension_for(filename, mime_type)
        key = f"{folder}/{int(time.time() * 1000)}-{uuid4().hex[:8]}{extension}"

        await call_storage(
            "upload",
            key,
            self.storage.upload,
            key,
            payload,
            mime_type,
            timeout=self.settings.storage_timeout_s,
        )

        poster_path: str | None = None
        poster_error: str | None = None
        if media_type is MediaType.video:
            poster_path, poster_error = await self._store_poster(key, payload, extension)

        async with self.session_factory() as session:
            record = await MediaTracker(session).record_upload(
                file_path=key,
                poster_path=poster_path,
                folder=folder,
                type=media_type,
            )
        self.logger.info(
            "media_uploaded",
            file_path=key,
            poster_path=poster_path,
            poster_error=poster_error,
            type=media_type.value,
        )
        return IngestResult(record=record, poster_error=poster_error)

    async def _store_poster(self, key: str, payload: bytes, extension: str) -> tuple[str | None, str | None]:
        try:
            poster_bytes = await asyncio.to_thread(
                self.poster_generator,
                payload,
                suffix=extension or ".mp4",
                timemark_s=self.settings.poster_timemark_s,
                width=self.settings.poster_width,
            )
        except DerivedAssetGenerationFailed as exc:
            self.logger.warning("poster_generation_failed", file_path=key, reason=exc.reason)
            return None, exc.reason
        except Exception as exc:
            self.logger.warning(
                "poster_generation_failed",
                file_path=key,
                reason="poster_generation_error",
                error=repr(exc),
            )
            return None, "poster_generation_error"

        poster_key = guess_poster(key, self.settings.posters_subfolder)
        try:
            await call_storage(
                "upload",
                poster_key,
                self.storage.upload,
                poster_key,
                poster_bytes,
                "image/jpeg",
                timeout=self.settings.storage_timeout_s,
            )
        except StorageUnavailable:
            self.logger.warning("poster_upload_failed", file_path=key, poster_path=poster_key)
            return None, "poster_upload_failed"
        return poster_key, None

    def _validate_paths(self, paths: Iterable[str] | None) -> list[str]:
        if paths is None or isinstance(paths, (str, bytes)):
            raise InvalidRequest("no_files_provided")
        requested: list[str] = []
        for raw in paths:
            path = normalize_asset_path(raw, self.settings.storage_bucket) if isinstance(raw, str) else None
            if path is None:
                raise InvalidRequest("invalid_path")
            requested.append(path)
        if not requested:
            raise InvalidRequest("no_files_provided")
        return list(dict.fromkeys(requested))

    def _validate_upload(self, payload: bytes, mime_type: str | None, folder: str | None) -> tuple[str, MediaType]:
        if not payload:
            raise InvalidRequest("missing_file")
        cleaned = (folder or "").strip().strip("/")
        if not cleaned:
            raise InvalidRequest("missing_folder")
        if cleaned not in self.settings.upload_folders:
            raise InvalidRequest("unknown_folder")
        if len(payload) > self.settings.max_upload_size_bytes:
            raise InvalidRequest("upload_too_large")
        major = (mime_type or "").split("/", 1)[0].lower()
        if major == "video":
            return cleaned, MediaType.video
        if major == "image":
            return cleaned, MediaType.image
        raise InvalidRequest("unsupported_media_type")

    @staticmethod
    def _extension_for(filename: str | None, mime_type: str | None) -> str:
        suffix = PurePosixPath(filename or "").suffix.lower()
        if suffix:
            return suffix
        return mimetypes.guess_extension(mime_type or "") or ""

    def public_urls(self, record: MediaRecord) -> dict[str, Any]:
        return {
            "url": self.storage.public_url(record.file_path),
            "poster_url": self.storage.public_url(record.poster_path) if record.poster_path else None,
        }


__all__ = [
    "AuditReport",
    "DeletionResult",
    "IngestResult",
    "PosterCleanupResult",
    "ReconciliationEngine",
    "classify",
]
