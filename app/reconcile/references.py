from __future__ import annotations

import asyncio

from app.core.errors import CollectionFailed
from app.core.logging import get_logger
from app.services.content_store import ContentStore

from .paths import normalize_asset_path

logger = get_logger(component="reference_collector")


async def _collect_kind(store: ContentStore, kind: str) -> list[str | None]:
    try:
        return await store.list_asset_paths(kind)
    except Exception as exc:
        logger.error("reference_query_failed", kind=kind, error=str(exc))
        raise CollectionFailed(kind) from exc


async def collect_references(store: ContentStore, *, bucket: str) -> set[str]:
    """Return every asset key referenced by any content entity.

    Per-kind queries run concurrently. One failing query fails the whole
    collection: a partial reference set would report false orphans.
    """
    kinds = store.kinds
    tasks = [asyncio.ensure_future(_collect_kind(store, kind)) for kind in kinds]
    try:
        batches = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise

    references: set[str] = set()
    for raw_values in batches:
        for raw in raw_values:
            path = normalize_asset_path(raw, bucket)
            if path is not None:
                references.add(path)
    logger.debug("references_collected", kinds=list(kinds), count=len(references))
    return references


__all__ = ["collect_references"]
