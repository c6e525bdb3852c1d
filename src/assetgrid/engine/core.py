"""Asset grid core engine - reads and the optimistic update protocol."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator
from uuid import UUID

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from assetgrid.config import settings
from assetgrid.db.repositories import (
    GridAssetEventRepository,
    GridAssetRepository,
    SiteRepository,
)
from assetgrid.engine.errors import (
    AssetNotFound,
    InvalidCursor,
    SiteNotFound,
    StoreUnavailable,
    VersionConflict,
)
from assetgrid.models import (
    AssetPatch,
    GridAsset,
    GridAssetEvent,
    GridAssetEventType,
    GridAssetStatus,
    PatchDiff,
    Site,
    SiteProgress,
)
from assetgrid.observability.metrics import metrics, timed
from assetgrid.utils.time import utc_now

logger = logging.getLogger(__name__)


class AssetGridEngine:
    """Core engine implementing asset grid operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.sites = SiteRepository(session)
        self.assets = GridAssetRepository(session)
        self.events = GridAssetEventRepository(session)

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        """Surface transport failures from the database as StoreUnavailable."""
        try:
            yield
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            logger.error(f"Store failure during {operation}: {e}", exc_info=True)
            raise StoreUnavailable(operation, e) from e

    # =========================================================================
    # Sites
    # =========================================================================

    async def list_sites(self, tenant_id: UUID) -> list[Site]:
        """List the tenant's sites."""
        with self._store_errors("list_sites"):
            return await self.sites.list(tenant_id)

    async def get_site(self, tenant_id: UUID, site_id: UUID) -> Site:
        """Get a site by ID."""
        with self._store_errors("get_site"):
            site = await self.sites.get(tenant_id, site_id)
        if not site:
            raise SiteNotFound(str(site_id))
        return site

    async def get_site_progress(self, tenant_id: UUID, site_id: UUID) -> SiteProgress:
        """Roll up status counts and completion for a site."""
        await self.get_site(tenant_id, site_id)

        with self._store_errors("get_site_progress"):
            groups = await self.assets.progress_by_site(tenant_id, site_id)

        progress = SiteProgress(
            site_id=site_id,
            status_counts={status.value: 0 for status in GridAssetStatus},
        )
        completed_against_plan = 0
        for group in groups:
            progress.total_assets += group["assets"]
            progress.status_counts[group["status"].value] = group["assets"]
            progress.planned_total += group["planned"]
            progress.completed_total += group["completed"]
            completed_against_plan += group["completed_against_plan"]

        if progress.planned_total:
            progress.percent_complete = round(
                completed_against_plan * 100.0 / progress.planned_total, 1
            )
        return progress

    # =========================================================================
    # Assets (read surface)
    # =========================================================================

    async def list_assets(
        self,
        tenant_id: UUID,
        site_id: UUID,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[GridAsset]:
        """List a site's assets, optionally filtered by status."""
        await self.get_site(tenant_id, site_id)

        asset_status = GridAssetStatus(status) if status else None
        limit = min(limit or settings.default_list_limit, settings.max_list_limit)

        with self._store_errors("list_assets"):
            return await self.assets.list_by_site(
                tenant_id=tenant_id,
                site_id=site_id,
                status=asset_status,
                limit=limit,
                offset=offset,
            )

    async def get_asset(self, tenant_id: UUID, asset_id: UUID) -> GridAsset:
        """Get an asset by ID."""
        with self._store_errors("get_asset"):
            asset = await self.assets.get(tenant_id, asset_id)
        if not asset:
            raise AssetNotFound(str(asset_id))
        return asset

    async def list_events(
        self,
        tenant_id: UUID,
        asset_id: UUID,
        limit: int | None = None,
        after: UUID | None = None,
    ) -> tuple[list[GridAssetEvent], UUID | None]:
        """Asset history, oldest first, with a cursor when more events follow."""
        await self.get_asset(tenant_id, asset_id)

        limit = min(limit or settings.default_event_limit, settings.max_event_limit)
        with self._store_errors("list_events"):
            if after and not await self.events.get(tenant_id, asset_id, after):
                raise InvalidCursor(str(asset_id), str(after))
            events = await self.events.list_by_asset(
                tenant_id, asset_id, limit=limit + 1, after=after
            )

        next_cursor = None
        if len(events) > limit:
            events = events[:limit]
            next_cursor = events[-1].event_id
        return events, next_cursor

    # =========================================================================
    # Optimistic update protocol
    # =========================================================================

    async def update_asset(
        self,
        tenant_id: UUID,
        asset_id: UUID,
        expected_version: int,
        patch: AssetPatch,
        actor_user_id: str | None,
        message: str | None = None,
    ) -> GridAsset:
        """
        Apply ``patch`` if the caller has seen the current version.

        The conditional write and its history event share one SAVEPOINT, so
        either both land or neither does. A stale ``expected_version`` raises
        VersionConflict carrying the current record; there is no retry here,
        because replaying a patch could overwrite the winner's changes.
        """
        with timed("asset.update.duration_ms"), self._store_errors("update_asset"):
            asset = await self.assets.get(tenant_id, asset_id)
            if not asset:
                metrics.inc_counter("asset.update.not_found")
                raise AssetNotFound(str(asset_id))

            if asset.version != expected_version:
                raise self._conflict(asset_id, expected_version, asset)

            diff = patch.diff(asset)
            values = self._merge_values(asset, diff, actor_user_id, utc_now())
            event_type = diff.event_type()

            async with self.session.begin_nested():  # SAVEPOINT
                updated = await self.assets.apply_update(
                    tenant_id=tenant_id,
                    asset_id=asset_id,
                    expected_version=expected_version,
                    values=values,
                )
                if updated is not None:
                    await self.events.append(
                        tenant_id=tenant_id,
                        asset_id=asset_id,
                        asset_version=updated.version,
                        event_type=event_type,
                        before_state=diff.before,
                        after_state=diff.after,
                        message=message,
                        actor_user_id=actor_user_id,
                    )

            if updated is None:
                # Lost the race between our read and the conditional write
                current = await self.assets.get(tenant_id, asset_id)
                if not current:
                    metrics.inc_counter("asset.update.not_found")
                    raise AssetNotFound(str(asset_id))
                raise self._conflict(asset_id, expected_version, current)

        metrics.inc_counter("asset.update.accepted")
        logger.info(
            f"Asset {asset_id} updated v{expected_version}->v{updated.version} "
            f"({event_type.value}: {sorted(diff.fields)}) by {actor_user_id or 'system'}"
        )
        return updated

    async def add_comment(
        self,
        tenant_id: UUID,
        asset_id: UUID,
        message: str,
        actor_user_id: str | None,
    ) -> GridAssetEvent:
        """
        Attach a comment to the asset's history without touching the asset.

        The asset row is locked before the event is stamped, so comments and
        updates on one asset commit in the order of their timestamps and a
        history cursor never skips a late-committing comment.
        """
        with self._store_errors("add_comment"):
            asset = await self.assets.get(tenant_id, asset_id, for_update=True)
            if not asset:
                raise AssetNotFound(str(asset_id))

            event = await self.events.append(
                tenant_id=tenant_id,
                asset_id=asset_id,
                asset_version=asset.version,
                event_type=GridAssetEventType.COMMENT,
                message=message,
                actor_user_id=actor_user_id,
            )

        metrics.inc_counter("asset.comment.created")
        return event

    async def sync_assignee_profile(
        self,
        tenant_id: UUID,
        user_id: str,
        name: str | None,
        avatar: str | None,
    ) -> int:
        """Refresh the assignee display projection after a profile change."""
        with self._store_errors("sync_assignee_profile"):
            refreshed = await self.assets.sync_assignee_profile(tenant_id, user_id, name, avatar)
        logger.info(f"Assignee projection refreshed for user {user_id} on {refreshed} assets")
        return refreshed

    async def get_metrics_snapshot(self) -> dict[str, Any]:
        """Return in-process counters and latency histograms."""
        return metrics.snapshot()

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _conflict(
        self, asset_id: UUID, expected_version: int, current: GridAsset
    ) -> VersionConflict:
        metrics.inc_counter("asset.update.conflict")
        logger.info(
            f"Version conflict on asset {asset_id}: expected v{expected_version}, "
            f"current v{current.version}"
        )
        return VersionConflict(str(asset_id), expected_version, current)

    def _merge_values(
        self,
        asset: GridAsset,
        diff: PatchDiff,
        actor_user_id: str | None,
        now: datetime,
    ) -> dict[str, Any]:
        """Column values for the conditional write, including derived fields."""
        values: dict[str, Any] = {
            "last_updated_at": now,
            "last_updated_by_user_id": actor_user_id,
        }

        if "status" in diff.after:
            new_status = GridAssetStatus(diff.after["status"])
            values["status"] = new_status
            if new_status == GridAssetStatus.COMPLETE:
                values["completed_at"] = now
                values["completed_by_user_id"] = actor_user_id
            elif asset.status == GridAssetStatus.COMPLETE:
                values["completed_at"] = None
                values["completed_by_user_id"] = None

        if "completed_count" in diff.after:
            values["completed_count"] = diff.after["completed_count"]

        if "assigned_to_user_id" in diff.after:
            values["assigned_to_user_id"] = diff.after["assigned_to_user_id"]
            # Display fields are re-filled by the profile projection sync
            values["assigned_to_name"] = None
            values["assigned_to_avatar"] = None

        return values
