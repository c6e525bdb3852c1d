"""Asset patches as a tagged union of recognised field changes."""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from assetgrid.models.asset import GridAsset
from assetgrid.models.enums import GridAssetEventType, GridAssetStatus


class StatusChange(BaseModel):
    """Move the asset to a new work status."""

    kind: Literal["status"] = "status"
    status: GridAssetStatus

    @property
    def field(self) -> str:
        return "status"

    @property
    def value(self) -> str:
        return self.status.value


class ProgressUpdate(BaseModel):
    """Set the completed-unit counter."""

    kind: Literal["progress"] = "progress"
    completed_count: int = Field(..., ge=0)

    @property
    def field(self) -> str:
        return "completed_count"

    @property
    def value(self) -> int:
        return self.completed_count


class AssignmentChange(BaseModel):
    """Hand the asset to another operator (None unassigns)."""

    kind: Literal["assignment"] = "assignment"
    assigned_to_user_id: Optional[str] = None

    @property
    def field(self) -> str:
        return "assigned_to_user_id"

    @property
    def value(self) -> Optional[str]:
        return self.assigned_to_user_id


FieldChange = Annotated[
    Union[StatusChange, ProgressUpdate, AssignmentChange],
    Field(discriminator="kind"),
]


class PatchDiff(BaseModel):
    """Fields a patch actually changes, with their old and new values."""

    before: dict[str, Any] = Field(default_factory=dict)
    after: dict[str, Any] = Field(default_factory=dict)

    @property
    def fields(self) -> set[str]:
        return set(self.after)

    def event_type(self) -> GridAssetEventType:
        """Classify the transition for the history log."""
        if "status" in self.after:
            return GridAssetEventType.STATUS_CHANGE
        if self.fields == {"assigned_to_user_id"}:
            return GridAssetEventType.ASSIGNMENT
        return GridAssetEventType.FIELD_UPDATE


class AssetPatch(BaseModel):
    """Partial update to a grid asset; at most one change per field."""

    changes: list[FieldChange] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_unique_fields(self) -> "AssetPatch":
        seen: set[str] = set()
        for change in self.changes:
            if change.field in seen:
                raise ValueError(f"Field {change.field} is patched more than once")
            seen.add(change.field)
        return self

    @classmethod
    def of(cls, *changes: FieldChange) -> "AssetPatch":
        return cls(changes=list(changes))

    def diff(self, asset: GridAsset) -> PatchDiff:
        """Compare against the current record; unchanged fields are dropped."""
        result = PatchDiff()
        for change in self.changes:
            current = asset.field_value(change.field)
            if current != change.value:
                result.before[change.field] = current
                result.after[change.field] = change.value
        return result
