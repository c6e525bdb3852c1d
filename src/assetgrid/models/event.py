"""Asset event model - immutable history of an asset."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

from assetgrid.models.enums import GridAssetEventType


class GridAssetEvent(BaseModel):
    """One recorded transition (or comment) on a grid asset."""

    event_id: UUID
    tenant_id: UUID
    asset_id: UUID
    asset_version: int
    event_type: GridAssetEventType

    # Partial snapshots: only the fields the transition touched
    before_state: Optional[dict[str, Any]] = None
    after_state: Optional[dict[str, Any]] = None

    message: Optional[str] = None
    # None means the event was system-originated
    created_by_user_id: Optional[str] = None
    created_at: datetime
