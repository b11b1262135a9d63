from __future__ import annotations

import asyncio
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

from .config import Settings
from .errors import StorageUnavailable

T = TypeVar("T")

PUBLIC_OBJECT_MARKER = "/storage/v1/object/public/"


class StorageError(Exception):
    """Raised by a backend when the object store rejects or fails a call."""


@dataclass(slots=True)
class StorageObject:
    name: str
    is_folder: bool = False
    size_bytes: int | None = None


class Storage(ABC):
    """Object store addressed by bucket-relative ``folder/filename`` keys."""

    bucket: str

    @abstractmethod
    def list(self, folder: str, limit: int) -> list[StorageObject]: ...

    @abstractmethod
    def remove(self, paths: Iterable[str]) -> None: ...

    @abstractmethod
    def upload(self, path: str, payload: bytes, content_type: str) -> None: ...

    @abstractmethod
    def public_url(self, path: str) -> str: ...


class LocalStorage(Storage):
    """Filesystem-backed storage abstraction suitable for development."""

    def __init__(self, base_path: Path, *, bucket: str, public_base_url: str):
        self.bucket = bucket
        self.base_path = base_path
        self.public_base_url = public_base_url.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        root = self.base_path.resolve()
        target = (root / key).resolve()
        if target != root and root not in target.parents:
            raise StorageError(f"key escapes storage root: {key}")
        return target

    def list(self, folder: str, limit: int) -> list[StorageObject]:
        base = self._resolve(folder)
        if not base.is_dir():
            return []
        entries: list[StorageObject] = []
        for child in sorted(base.iterdir(), key=lambda p: p.name)[:limit]:
            if child.is_dir():
                entries.append(StorageObject(name=child.name, is_folder=True))
            else:
                entries.append(StorageObject(name=child.name, size_bytes=child.stat().st_size))
        return entries

    def remove(self, paths: Iterable[str]) -> None:
        for key in paths:
            self._resolve(key).unlink(missing_ok=True)

    def upload(self, path: str, payload: bytes, content_type: str) -> None:
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"object already exists: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}{PUBLIC_OBJECT_MARKER}{self.bucket}/{path}"


class SupabaseStorage(Storage):
    """Supabase Storage bucket accessed with the service-role key."""

    def __init__(self, url: str, key: str | None, *, bucket: str):
        self.url = url.rstrip("/")
        self.key = key
        self.bucket = bucket
        self._client: Any = None

    def _bucket(self) -> Any:
        if self._client is None:
            from supabase import create_client

            if not self.key:
                raise StorageError("supabase_service_role_key is not configured")
            self._client = create_client(self.url, self.key)
        return self._client.storage.from_(self.bucket)

    def list(self, folder: str, limit: int) -> list[StorageObject]:
        try:
            rows = self._bucket().list(folder, {"limit": limit})
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(str(exc)) from exc
        entries: list[StorageObject] = []
        for row in rows or []:
            metadata = row.get("metadata") or {}
            # Supabase reports sub-folders as rows without an id.
            entries.append(
                StorageObject(
                    name=row.get("name") or "",
                    is_folder=row.get("id") is None,
                    size_bytes=metadata.get("size"),
                )
            )
        return entries

    def remove(self, paths: Iterable[str]) -> None:
        try:
            self._bucket().remove(list(paths))
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(str(exc)) from exc

    def upload(self, path: str, payload: bytes, content_type: str) -> None:
        try:
            self._bucket().upload(path, payload, {"content-type": content_type, "upsert": "false"})
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(str(exc)) from exc

    def public_url(self, path: str) -> str:
        return f"{self.url}{PUBLIC_OBJECT_MARKER}{self.bucket}/{path}"


async def call_storage(
    operation: str,
    target: str,
    func: Callable[..., T],
    *args: Any,
    timeout: float,
) -> T:
    """Run a blocking backend call off the event loop, bounded by ``timeout``.

    Backend failures and timeouts both surface as retryable ``StorageUnavailable``.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise StorageUnavailable(operation, target) from exc
    except (StorageError, OSError) as exc:
        raise StorageUnavailable(operation, target) from exc


def join_key(folder: str, name: str) -> str:
    return posixpath.join(folder, name)


def get_storage(settings: Settings) -> Storage:
    if settings.storage_backend == "local":
        return LocalStorage(
            base_path=Path(settings.local_storage_base_path),
            bucket=settings.storage_bucket,
            public_base_url=settings.public_base_url,
        )
    if settings.storage_backend == "supabase":
        return SupabaseStorage(
            settings.supabase_url or "",
            settings.secrets.supabase_service_role_key,
            bucket=settings.storage_bucket,
        )
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "PUBLIC_OBJECT_MARKER",
    "Storage",
    "StorageError",
    "StorageObject",
    "LocalStorage",
    "SupabaseStorage",
    "call_storage",
    "join_key",
    "get_storage",
]
