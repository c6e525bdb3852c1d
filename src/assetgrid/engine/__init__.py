"""Asset grid engine - core operations."""

from assetgrid.engine.core import AssetGridEngine
from assetgrid.engine.errors import (
    AssetGridError,
    AssetNotFound,
    InvalidCursor,
    SiteNotFound,
    StoreUnavailable,
    VersionConflict,
)

__all__ = [
    "AssetGridEngine",
    "AssetGridError",
    "AssetNotFound",
    "InvalidCursor",
    "SiteNotFound",
    "StoreUnavailable",
    "VersionConflict",
]
