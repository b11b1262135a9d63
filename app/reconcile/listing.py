from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from app.core.errors import StorageUnavailable
from app.core.logging import get_logger
from app.core.storage import Storage, call_storage, join_key

logger = get_logger(component="storage_lister")


@dataclass(slots=True)
class StorageListing:
    paths: set[str] = field(default_factory=set)
    degraded_folders: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_folders)


async def list_folder(storage: Storage, folder: str, *, page_size: int, timeout: float) -> list[str]:
    entries = await call_storage("list", folder, storage.list, folder, page_size, timeout=timeout)
    return [join_key(folder, entry.name) for entry in entries if entry.name and not entry.is_folder]


async def list_storage(
    storage: Storage,
    folders: Iterable[str],
    *,
    page_size: int,
    timeout: float,
) -> StorageListing:
    """Enumerate objects in the scan scope.

    A folder whose listing fails contributes nothing and is reported in
    ``degraded_folders``; the remaining folders are still listed.
    """
    listing = StorageListing()
    for folder in folders:
        try:
            keys = await list_folder(storage, folder, page_size=page_size, timeout=timeout)
        except StorageUnavailable as exc:
            logger.warning("storage_folder_list_failed", folder=folder, error=str(exc.__cause__ or exc))
            listing.degraded_folders.append(folder)
            continue
        listing.paths.update(keys)
    return listing


__all__ = ["StorageListing", "list_folder", "list_storage"]
