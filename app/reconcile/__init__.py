"""Asset reconciliation: reference collection, storage listing and the media tracker."""

from .listing import StorageListing, list_storage
from .paths import guess_poster, normalize_asset_path
from .references import collect_references
from .tracker import MediaTracker

__all__ = [
    "MediaTracker",
    "StorageListing",
    "collect_references",
    "guess_poster",
    "list_storage",
    "normalize_asset_path",
]
