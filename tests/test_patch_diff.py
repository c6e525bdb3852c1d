"""
Patch model tests: the tagged union of field changes and its diff.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from assetgrid.models import (
    AssetPatch,
    AssignmentChange,
    GridAsset,
    GridAssetEventType,
    GridAssetStatus,
    PatchDiff,
    ProgressUpdate,
    StatusChange,
)


def _asset(**overrides) -> GridAsset:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    fields = dict(
        asset_id=uuid4(),
        tenant_id=uuid4(),
        site_id=uuid4(),
        asset_key="STR-014",
        asset_type="string",
        industry="solar",
        created_at=now,
        last_updated_at=now,
    )
    fields.update(overrides)
    return GridAsset(**fields)


def test_diff_drops_unchanged_fields():
    asset = _asset(status=GridAssetStatus.IN_PROGRESS, completed_count=3)
    patch = AssetPatch.of(
        StatusChange(status=GridAssetStatus.IN_PROGRESS),
        ProgressUpdate(completed_count=5),
    )

    diff = patch.diff(asset)

    assert diff.before == {"completed_count": 3}
    assert diff.after == {"completed_count": 5}
    assert diff.fields == {"completed_count"}


def test_status_is_snapshotted_as_its_value():
    diff = AssetPatch.of(StatusChange(status=GridAssetStatus.BLOCKED)).diff(_asset())

    assert diff.before == {"status": "not_started"}
    assert diff.after == {"status": "blocked"}


@pytest.mark.parametrize(
    "changes, expected",
    [
        ([StatusChange(status=GridAssetStatus.COMPLETE)], GridAssetEventType.STATUS_CHANGE),
        (
            [StatusChange(status=GridAssetStatus.COMPLETE), ProgressUpdate(completed_count=2)],
            GridAssetEventType.STATUS_CHANGE,
        ),
        (
            [StatusChange(status=GridAssetStatus.COMPLETE), AssignmentChange(assigned_to_user_id="user-carol")],
            GridAssetEventType.STATUS_CHANGE,
        ),
        ([ProgressUpdate(completed_count=2)], GridAssetEventType.FIELD_UPDATE),
        ([AssignmentChange(assigned_to_user_id="user-carol")], GridAssetEventType.ASSIGNMENT),
        (
            [AssignmentChange(assigned_to_user_id="user-carol"), ProgressUpdate(completed_count=2)],
            GridAssetEventType.FIELD_UPDATE,
        ),
    ],
)
def test_event_type_follows_changed_fields(changes, expected):
    diff = AssetPatch(changes=changes).diff(_asset())
    assert diff.event_type() == expected


def test_assignment_with_unchanged_progress_is_assignment():
    """Only fields that actually change decide the event type."""
    asset = _asset(completed_count=2)
    diff = AssetPatch.of(
        AssignmentChange(assigned_to_user_id="user-carol"),
        ProgressUpdate(completed_count=2),
    ).diff(asset)

    assert diff.fields == {"assigned_to_user_id"}
    assert diff.event_type() == GridAssetEventType.ASSIGNMENT


def test_empty_diff_is_field_update():
    assert PatchDiff().event_type() == GridAssetEventType.FIELD_UPDATE


def test_unassign_is_a_change():
    asset = _asset(assigned_to_user_id="user-dave")
    diff = AssetPatch.of(AssignmentChange(assigned_to_user_id=None)).diff(asset)

    assert diff.before == {"assigned_to_user_id": "user-dave"}
    assert diff.after == {"assigned_to_user_id": None}


def test_patch_requires_at_least_one_change():
    with pytest.raises(ValidationError):
        AssetPatch(changes=[])


def test_patch_rejects_duplicate_fields():
    with pytest.raises(ValidationError, match="patched more than once"):
        AssetPatch.of(ProgressUpdate(completed_count=1), ProgressUpdate(completed_count=2))


def test_patch_rejects_duplicate_status_even_when_equal():
    with pytest.raises(ValidationError, match="Field status is patched more than once"):
        AssetPatch.of(
            StatusChange(status=GridAssetStatus.BLOCKED),
            StatusChange(status=GridAssetStatus.BLOCKED),
        )


def test_negative_completed_count_rejected():
    with pytest.raises(ValidationError):
        ProgressUpdate(completed_count=-1)


def test_patch_parses_tagged_json():
    patch = AssetPatch.model_validate(
        {
            "changes": [
                {"kind": "status", "status": "needs_review"},
                {"kind": "assignment", "assigned_to_user_id": "user-erin"},
            ]
        }
    )

    assert isinstance(patch.changes[0], StatusChange)
    assert patch.changes[0].status == GridAssetStatus.NEEDS_REVIEW
    assert isinstance(patch.changes[1], AssignmentChange)


def test_unknown_change_kind_rejected():
    with pytest.raises(ValidationError):
        AssetPatch.model_validate({"changes": [{"kind": "priority", "priority": 1}]})
