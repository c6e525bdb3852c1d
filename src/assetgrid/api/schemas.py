"""API request/response schemas."""

from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from assetgrid.models import (
    AssetPatch,
    AssignmentChange,
    GridAsset,
    GridAssetEvent,
    GridAssetStatus,
    ProgressUpdate,
    Site,
    StatusChange,
)


# ============================================================================
# Shared schemas
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


# ============================================================================
# Sites
# ============================================================================


class ListSitesResponse(BaseModel):
    """List sites response."""

    sites: list[Site]


# ============================================================================
# Assets
# ============================================================================


class ListAssetsResponse(BaseModel):
    """List assets response."""

    assets: list[GridAsset]
    count: int


class UpdateAssetRequest(BaseModel):
    """
    Patch submitted against a version stamp.

    Accepts both snake_case and the camelCase keys the grid UI sends. An
    explicit ``assigned_to_user_id: null`` unassigns; leaving it out does not.
    """

    model_config = ConfigDict(populate_by_name=True)

    expected_version: int = Field(
        ...,
        ge=1,
        validation_alias=AliasChoices("expected_version", "expectedVersion"),
        description="Version the caller last observed",
    )
    status: Optional[GridAssetStatus] = Field(None, description="New work status")
    completed_count: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("completed_count", "completedCount"),
        description="New completed-unit count",
    )
    assigned_to_user_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("assigned_to_user_id", "assignedToUserId"),
        description="New assignee (null unassigns)",
    )
    message: Optional[str] = Field(None, max_length=2000, description="Note stored on the event")

    @model_validator(mode="after")
    def require_a_change(self) -> "UpdateAssetRequest":
        if (
            self.status is None
            and self.completed_count is None
            and "assigned_to_user_id" not in self.model_fields_set
        ):
            raise ValueError("Patch must set at least one of status, completed_count, assigned_to_user_id")
        return self

    def to_patch(self) -> AssetPatch:
        changes = []
        if self.status is not None:
            changes.append(StatusChange(status=self.status))
        if self.completed_count is not None:
            changes.append(ProgressUpdate(completed_count=self.completed_count))
        if "assigned_to_user_id" in self.model_fields_set:
            changes.append(AssignmentChange(assigned_to_user_id=self.assigned_to_user_id))
        return AssetPatch(changes=changes)


# ============================================================================
# Events
# ============================================================================


class ListEventsResponse(BaseModel):
    """Asset history response, oldest first."""

    events: list[GridAssetEvent]
    next_cursor: Optional[UUID] = Field(None, description="Pass as ?after= to continue")


class CreateCommentRequest(BaseModel):
    """Comment on an asset."""

    message: str = Field(..., min_length=1, max_length=2000)


# ============================================================================
# Assignee projection
# ============================================================================


class AssigneeProfileRequest(BaseModel):
    """Display fields of a user, pushed when their profile changes."""

    name: Optional[str] = Field(None, max_length=255)
    avatar: Optional[str] = None


class AssigneeProfileResponse(BaseModel):
    """Projection sync result."""

    user_id: str
    assets_refreshed: int


# ============================================================================
# Metrics
# ============================================================================


class MetricsResponse(BaseModel):
    """Metrics snapshot."""

    counters: dict[str, float]
    histograms: dict[str, dict[str, Any]]
