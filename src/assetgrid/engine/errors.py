"""Asset grid engine errors."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from assetgrid.models import GridAsset


class AssetGridError(Exception):
    """Base error for asset grid operations."""

    def __init__(self, message: str, code: str = "ASSETGRID_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class AssetNotFound(AssetGridError):
    """Asset does not exist."""

    def __init__(self, asset_id: str):
        super().__init__(f"Asset not found: {asset_id}", "ASSET_NOT_FOUND")
        self.asset_id = asset_id


class SiteNotFound(AssetGridError):
    """Site does not exist."""

    def __init__(self, site_id: str):
        super().__init__(f"Site not found: {site_id}", "SITE_NOT_FOUND")
        self.site_id = site_id


class VersionConflict(AssetGridError):
    """Caller's version is stale; carries the authoritative record."""

    def __init__(self, asset_id: str, expected_version: int, current: "GridAsset"):
        super().__init__(
            f"Version conflict on asset {asset_id}: expected {expected_version}, "
            f"current is {current.version}",
            "VERSION_CONFLICT",
        )
        self.asset_id = asset_id
        self.expected_version = expected_version
        self.current = current


class StoreUnavailable(AssetGridError):
    """Persistence collaborator failed; nothing was applied."""

    def __init__(self, operation: str, cause: Exception | None = None):
        super().__init__(f"Store unavailable during {operation}", "STORE_UNAVAILABLE")
        self.operation = operation
        self.cause = cause


class InvalidCursor(AssetGridError):
    """History cursor is not an event of the asset being paged."""

    def __init__(self, asset_id: str, cursor: str):
        super().__init__(f"Event {cursor} is not in the history of asset {asset_id}", "INVALID_CURSOR")
        self.asset_id = asset_id
        self.cursor = cursor
