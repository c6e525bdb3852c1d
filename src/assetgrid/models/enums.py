"""Asset grid enumerations."""

from enum import Enum


class GridAssetStatus(str, Enum):
    """Work state of a grid asset."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    BLOCKED = "blocked"
    NEEDS_REVIEW = "needs_review"


class GridAssetEventType(str, Enum):
    """Kinds of asset history events."""

    STATUS_CHANGE = "status_change"
    FIELD_UPDATE = "field_update"
    COMMENT = "comment"
    ATTACHMENT = "attachment"
    ASSIGNMENT = "assignment"

    def is_mutation(self) -> bool:
        """Whether events of this type accompany a version bump."""
        return self in {
            GridAssetEventType.STATUS_CHANGE,
            GridAssetEventType.FIELD_UPDATE,
            GridAssetEventType.ASSIGNMENT,
        }
