"""Asset grid database layer."""

from assetgrid.db.base import Base, close_db, init_db
from assetgrid.db.tables import GridAssetEventTable, GridAssetTable, SiteTable

__all__ = [
    "Base",
    "close_db",
    "init_db",
    "GridAssetEventTable",
    "GridAssetTable",
    "SiteTable",
]
