"""Grid asset model - a trackable unit of field work on a site."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from assetgrid.models.enums import GridAssetStatus


class GridAsset(BaseModel):
    """Versioned record for one inspection/installation asset."""

    # Identity
    asset_id: UUID
    tenant_id: UUID
    site_id: UUID
    asset_key: str
    asset_type: str
    industry: str
    description: Optional[str] = None

    # Work state
    status: GridAssetStatus = GridAssetStatus.NOT_STARTED
    planned_count: Optional[int] = None
    completed_count: int = 0
    completed_at: Optional[datetime] = None
    completed_by_user_id: Optional[str] = None

    # Assignment (name/avatar are a display projection of the user profile)
    assigned_to_user_id: Optional[str] = None
    assigned_to_name: Optional[str] = None
    assigned_to_avatar: Optional[str] = None

    # Concurrency token: starts at 1, +1 per accepted update
    version: int = 1

    # Auditing
    created_at: datetime
    last_updated_at: datetime
    last_updated_by_user_id: Optional[str] = None

    # Opaque display payload written by importers
    meta: dict[str, Any] = Field(default_factory=dict)

    def field_value(self, field: str) -> Any:
        """Return a patchable field in its JSON snapshot form."""
        value = getattr(self, field)
        if isinstance(value, GridAssetStatus):
            return value.value
        return value


class SiteProgress(BaseModel):
    """Progress roll-up across all assets of a site."""

    site_id: UUID
    total_assets: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)
    planned_total: int = 0
    completed_total: int = 0
    percent_complete: float = 0.0
