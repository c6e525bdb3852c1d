"""Asset grid data models."""

from assetgrid.models.enums import GridAssetEventType, GridAssetStatus
from assetgrid.models.site import Site
from assetgrid.models.asset import GridAsset, SiteProgress
from assetgrid.models.event import GridAssetEvent
from assetgrid.models.patch import (
    AssetPatch,
    AssignmentChange,
    FieldChange,
    PatchDiff,
    ProgressUpdate,
    StatusChange,
)

__all__ = [
    "AssetPatch",
    "AssignmentChange",
    "FieldChange",
    "GridAsset",
    "GridAssetEvent",
    "GridAssetEventType",
    "GridAssetStatus",
    "PatchDiff",
    "ProgressUpdate",
    "Site",
    "SiteProgress",
    "StatusChange",
]
