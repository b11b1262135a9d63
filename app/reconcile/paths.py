from __future__ import annotations

import posixpath
from typing import Optional

from app.core.storage import PUBLIC_OBJECT_MARKER

POSTER_EXTENSION = ".jpg"


def normalize_asset_path(raw: Optional[str], bucket: str) -> Optional[str]:
    """Reduce a stored asset reference to its bucket-relative key.

    Public object URLs are cut after the ``/storage/v1/object/public/`` marker
    and lose one leading ``<bucket>/`` segment. Bare keys are returned as-is,
    which keeps the function idempotent. URLs without the marker, and empty
    values, yield ``None``.
    """
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None

    if PUBLIC_OBJECT_MARKER in value:
        key = value.split(PUBLIC_OBJECT_MARKER, 1)[1].strip()
        prefix = f"{bucket}/"
        if key.startswith(prefix):
            key = key[len(prefix):]
        if PUBLIC_OBJECT_MARKER in key or "://" in key:
            return None
        return key or None

    if "://" in value:
        return None
    return value


def guess_poster(path: str, posters_subfolder: str = "posters") -> str:
    """``folder/name.ext`` -> ``folder/posters/name.jpg``."""
    folder, filename = posixpath.split(path)
    stem, _ = posixpath.splitext(filename)
    return posixpath.join(folder, posters_subfolder, f"{stem}{POSTER_EXTENSION}")


__all__ = ["POSTER_EXTENSION", "normalize_asset_path", "guess_poster"]
