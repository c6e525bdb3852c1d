"""
Optimistic update protocol tests.

A patch lands only when the caller's expected version matches the stored
one; every accepted write bumps the version by exactly one and records one
history event.
"""

import pytest
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from assetgrid.engine import AssetGridEngine, AssetNotFound, VersionConflict
from assetgrid.models import (
    AssetPatch,
    GridAssetEventType,
    GridAssetStatus,
    ProgressUpdate,
    StatusChange,
)
from assetgrid.observability.metrics import metrics


@pytest.mark.asyncio
async def test_accepted_update_bumps_version_and_records_event(session: AsyncSession, tenant_id, asset):
    """Fresh asset, correct version: new status at version 2 with one event."""
    engine = AssetGridEngine(session)
    assert asset.version == 1
    assert asset.status == GridAssetStatus.NOT_STARTED
    assert asset.completed_count == 0

    updated = await engine.update_asset(
        tenant_id=tenant_id,
        asset_id=asset.asset_id,
        expected_version=1,
        patch=AssetPatch.of(StatusChange(status=GridAssetStatus.IN_PROGRESS)),
        actor_user_id="user-alice",
    )

    assert updated.version == 2
    assert updated.status == GridAssetStatus.IN_PROGRESS
    assert updated.last_updated_by_user_id == "user-alice"

    events, next_cursor = await engine.list_events(tenant_id, asset.asset_id)
    assert next_cursor is None
    assert len(events) == 1
    event = events[0]
    assert event.event_type == GridAssetEventType.STATUS_CHANGE
    assert event.before_state == {"status": "not_started"}
    assert event.after_state == {"status": "in_progress"}
    assert event.asset_version == 2
    assert event.created_by_user_id == "user-alice"

    assert metrics.counter("asset.update.accepted") == 1


@pytest.mark.asyncio
async def test_stale_version_conflicts_with_current_record(session: AsyncSession, tenant_id, asset):
    """Repeating the call with the old version is rejected and writes nothing."""
    engine = AssetGridEngine(session)
    patch = AssetPatch.of(StatusChange(status=GridAssetStatus.IN_PROGRESS))

    await engine.update_asset(tenant_id, asset.asset_id, 1, patch, "user-alice")

    with pytest.raises(VersionConflict) as exc_info:
        await engine.update_asset(tenant_id, asset.asset_id, 1, patch, "user-bob")

    conflict = exc_info.value
    assert conflict.code == "VERSION_CONFLICT"
    assert conflict.expected_version == 1
    assert conflict.current.version == 2
    assert conflict.current.status == GridAssetStatus.IN_PROGRESS
    assert conflict.current.last_updated_by_user_id == "user-alice"

    assert await engine.events.count_by_asset(tenant_id, asset.asset_id) == 1
    assert metrics.counter("asset.update.conflict") == 1


@pytest.mark.asyncio
async def test_unknown_asset_is_not_found(session: AsyncSession, tenant_id, asset):
    """Updating an asset that does not exist raises AssetNotFound."""
    engine = AssetGridEngine(session)

    with pytest.raises(AssetNotFound) as exc_info:
        await engine.update_asset(
            tenant_id=tenant_id,
            asset_id=uuid4(),
            expected_version=1,
            patch=AssetPatch.of(StatusChange(status=GridAssetStatus.COMPLETE)),
            actor_user_id="user-alice",
        )

    assert exc_info.value.code == "ASSET_NOT_FOUND"
    assert metrics.counter("asset.update.not_found") == 1


@pytest.mark.asyncio
async def test_asset_of_other_tenant_is_not_found(session: AsyncSession, asset):
    """Tenants cannot see or write each other's assets."""
    engine = AssetGridEngine(session)

    with pytest.raises(AssetNotFound):
        await engine.update_asset(
            tenant_id=uuid4(),
            asset_id=asset.asset_id,
            expected_version=1,
            patch=AssetPatch.of(ProgressUpdate(completed_count=3)),
            actor_user_id="user-alice",
        )

    current = await engine.assets.get(asset.tenant_id, asset.asset_id)
    assert current.version == 1
    assert current.completed_count == 0


@pytest.mark.asyncio
async def test_version_increases_by_one_per_accepted_update(session: AsyncSession, tenant_id, asset):
    """A chain of updates yields versions 2..n+1 and one event per version."""
    engine = AssetGridEngine(session)

    version = asset.version
    for count in range(1, 6):
        updated = await engine.update_asset(
            tenant_id=tenant_id,
            asset_id=asset.asset_id,
            expected_version=version,
            patch=AssetPatch.of(ProgressUpdate(completed_count=count)),
            actor_user_id="user-alice",
        )
        assert updated.version == version + 1
        version = updated.version

    events, _ = await engine.list_events(tenant_id, asset.asset_id)
    assert [e.asset_version for e in events] == [2, 3, 4, 5, 6]
    assert all(e.event_type == GridAssetEventType.FIELD_UPDATE for e in events)
    assert events[-1].after_state == {"completed_count": 5}


@pytest.mark.asyncio
async def test_no_op_patch_still_advances_version(session: AsyncSession, tenant_id, asset):
    """Patching a field to its current value is accepted with an empty diff."""
    engine = AssetGridEngine(session)

    updated = await engine.update_asset(
        tenant_id=tenant_id,
        asset_id=asset.asset_id,
        expected_version=1,
        patch=AssetPatch.of(StatusChange(status=GridAssetStatus.NOT_STARTED)),
        actor_user_id="user-alice",
    )

    assert updated.version == 2
    events, _ = await engine.list_events(tenant_id, asset.asset_id)
    assert len(events) == 1
    assert events[0].event_type == GridAssetEventType.FIELD_UPDATE
    assert events[0].before_state == {}
    assert events[0].after_state == {}


@pytest.mark.asyncio
async def test_update_message_is_stored_on_event(session: AsyncSession, tenant_id, asset):
    engine = AssetGridEngine(session)

    await engine.update_asset(
        tenant_id=tenant_id,
        asset_id=asset.asset_id,
        expected_version=1,
        patch=AssetPatch.of(StatusChange(status=GridAssetStatus.BLOCKED)),
        actor_user_id="user-alice",
        message="Access road flooded",
    )

    events, _ = await engine.list_events(tenant_id, asset.asset_id)
    assert events[0].message == "Access road flooded"


@pytest.mark.asyncio
async def test_repeated_stale_retries_are_rejected_identically(session: AsyncSession, tenant_id, asset):
    """A client blindly retrying a stale patch never overwrites the winner."""
    engine = AssetGridEngine(session)

    await engine.update_asset(
        tenant_id, asset.asset_id, 1, AssetPatch.of(ProgressUpdate(completed_count=7)), "user-alice"
    )

    stale = AssetPatch.of(ProgressUpdate(completed_count=2))
    conflicts = []
    for _ in range(3):
        with pytest.raises(VersionConflict) as exc_info:
            await engine.update_asset(tenant_id, asset.asset_id, 1, stale, "user-bob")
        conflicts.append(exc_info.value.current)

    assert {c.version for c in conflicts} == {2}
    assert {c.completed_count for c in conflicts} == {7}
    assert await engine.events.count_by_asset(tenant_id, asset.asset_id) == 1
    assert metrics.counter("asset.update.conflict") == 3
