"""Database repositories for asset grid entities."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Select, and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from assetgrid.db.tables import GridAssetEventTable, GridAssetTable, SiteTable
from assetgrid.models import (
    GridAsset,
    GridAssetEvent,
    GridAssetEventType,
    GridAssetStatus,
    Site,
)
from assetgrid.utils.time import as_utc, utc_now


class SiteRepository:
    """Repository for site lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        tenant_id: UUID,
        name: str,
        client: str,
        location: str | None = None,
        status: str = "Active",
    ) -> Site:
        """Provision a site."""
        now = utc_now()
        row = SiteTable(
            site_id=uuid4(),
            tenant_id=tenant_id,
            name=name,
            client=client,
            location=location,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, tenant_id: UUID, site_id: UUID) -> Site | None:
        """Get a site by ID."""
        result = await self.session.execute(
            select(SiteTable).where(
                SiteTable.tenant_id == tenant_id,
                SiteTable.site_id == site_id,
            )
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list(self, tenant_id: UUID) -> list[Site]:
        """List a tenant's sites by name."""
        result = await self.session.execute(
            select(SiteTable)
            .where(SiteTable.tenant_id == tenant_id)
            .order_by(SiteTable.name.asc(), SiteTable.site_id.asc())
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    def _row_to_model(self, row: SiteTable) -> Site:
        return Site(
            site_id=row.site_id,
            tenant_id=row.tenant_id,
            name=row.name,
            client=row.client,
            location=row.location,
            status=row.status,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )


class GridAssetRepository:
    """
    Repository for grid assets.

    ``apply_update`` is the only mutation path for work-state fields; it is a
    compare-and-swap on the ``version`` column and never reads first.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        tenant_id: UUID,
        site_id: UUID,
        asset_key: str,
        asset_type: str,
        industry: str,
        description: str | None = None,
        status: GridAssetStatus = GridAssetStatus.NOT_STARTED,
        planned_count: int | None = None,
        completed_count: int = 0,
        assigned_to_user_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> GridAsset:
        """Provision an asset at version 1."""
        now = utc_now()
        row = GridAssetTable(
            asset_id=uuid4(),
            tenant_id=tenant_id,
            site_id=site_id,
            asset_key=asset_key,
            asset_type=asset_type,
            industry=industry,
            description=description,
            status=status,
            planned_count=planned_count,
            completed_count=completed_count,
            assigned_to_user_id=assigned_to_user_id,
            version=1,
            created_at=now,
            last_updated_at=now,
            meta=meta or {},
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    def _select_asset(self, tenant_id: UUID, asset_id: UUID, for_update: bool = False) -> Select:
        query = (
            select(GridAssetTable)
            .where(
                GridAssetTable.tenant_id == tenant_id,
                GridAssetTable.asset_id == asset_id,
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        return query

    async def get(
        self, tenant_id: UUID, asset_id: UUID, for_update: bool = False
    ) -> GridAsset | None:
        """
        Get an asset by ID, always reading the stored row.

        ``for_update`` holds the row lock until the transaction ends, which
        serializes the caller with conditional writes on the same asset.
        """
        result = await self.session.execute(self._select_asset(tenant_id, asset_id, for_update))
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list_by_site(
        self,
        tenant_id: UUID,
        site_id: UUID,
        status: GridAssetStatus | None = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[GridAsset]:
        """List a site's assets ordered by asset key."""
        query = select(GridAssetTable).where(
            GridAssetTable.tenant_id == tenant_id,
            GridAssetTable.site_id == site_id,
        )
        if status:
            query = query.where(GridAssetTable.status == status)

        query = (
            query.order_by(GridAssetTable.asset_key.asc(), GridAssetTable.asset_id.asc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )

        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def apply_update(
        self,
        tenant_id: UUID,
        asset_id: UUID,
        expected_version: int,
        values: dict[str, Any],
    ) -> GridAsset | None:
        """
        Write ``values`` only if the stored version still equals ``expected_version``.

        Returns the updated asset, or None when no row matched (stale version
        or missing asset). The caller decides which of the two it was.
        """
        result = await self.session.execute(
            update(GridAssetTable)
            .where(
                GridAssetTable.tenant_id == tenant_id,
                GridAssetTable.asset_id == asset_id,
                GridAssetTable.version == expected_version,
            )
            .values(**values, version=GridAssetTable.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        return await self.get(tenant_id, asset_id)

    async def sync_assignee_profile(
        self,
        tenant_id: UUID,
        user_id: str,
        name: str | None,
        avatar: str | None,
    ) -> int:
        """Refresh the denormalized assignee display fields; leaves version alone."""
        result = await self.session.execute(
            update(GridAssetTable)
            .where(
                GridAssetTable.tenant_id == tenant_id,
                GridAssetTable.assigned_to_user_id == user_id,
            )
            .values(assigned_to_name=name, assigned_to_avatar=avatar)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def progress_by_site(self, tenant_id: UUID, site_id: UUID) -> list[dict[str, Any]]:
        """Per-status counts and counter sums for a site."""
        planned_completed = func.sum(
            case(
                (GridAssetTable.planned_count.isnot(None), GridAssetTable.completed_count),
                else_=0,
            )
        )
        result = await self.session.execute(
            select(
                GridAssetTable.status,
                func.count().label("assets"),
                func.coalesce(func.sum(GridAssetTable.planned_count), 0).label("planned"),
                func.coalesce(func.sum(GridAssetTable.completed_count), 0).label("completed"),
                func.coalesce(planned_completed, 0).label("completed_against_plan"),
            )
            .where(
                GridAssetTable.tenant_id == tenant_id,
                GridAssetTable.site_id == site_id,
            )
            .group_by(GridAssetTable.status)
        )
        return [
            {
                "status": GridAssetStatus(row.status),
                "assets": int(row.assets),
                "planned": int(row.planned),
                "completed": int(row.completed),
                "completed_against_plan": int(row.completed_against_plan),
            }
            for row in result.all()
        ]

    def _row_to_model(self, row: GridAssetTable) -> GridAsset:
        return GridAsset(
            asset_id=row.asset_id,
            tenant_id=row.tenant_id,
            site_id=row.site_id,
            asset_key=row.asset_key,
            asset_type=row.asset_type,
            industry=row.industry,
            description=row.description,
            status=row.status,
            planned_count=row.planned_count,
            completed_count=row.completed_count,
            completed_at=as_utc(row.completed_at),
            completed_by_user_id=row.completed_by_user_id,
            assigned_to_user_id=row.assigned_to_user_id,
            assigned_to_name=row.assigned_to_name,
            assigned_to_avatar=row.assigned_to_avatar,
            version=row.version,
            created_at=as_utc(row.created_at),
            last_updated_at=as_utc(row.last_updated_at),
            last_updated_by_user_id=row.last_updated_by_user_id,
            meta=row.meta or {},
        )


class GridAssetEventRepository:
    """Repository for the append-only asset history."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        tenant_id: UUID,
        asset_id: UUID,
        asset_version: int,
        event_type: GridAssetEventType,
        before_state: dict[str, Any] | None = None,
        after_state: dict[str, Any] | None = None,
        message: str | None = None,
        actor_user_id: str | None = None,
    ) -> GridAssetEvent:
        """Append one event."""
        row = GridAssetEventTable(
            event_id=uuid4(),
            tenant_id=tenant_id,
            asset_id=asset_id,
            asset_version=asset_version,
            event_type=event_type,
            before_state=before_state,
            after_state=after_state,
            message=message,
            created_by_user_id=actor_user_id,
            created_at=utc_now(),
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, tenant_id: UUID, asset_id: UUID, event_id: UUID) -> GridAssetEvent | None:
        """Get one event of an asset."""
        result = await self.session.execute(
            select(GridAssetEventTable).where(
                GridAssetEventTable.tenant_id == tenant_id,
                GridAssetEventTable.asset_id == asset_id,
                GridAssetEventTable.event_id == event_id,
            )
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list_by_asset(
        self,
        tenant_id: UUID,
        asset_id: UUID,
        limit: int | None = None,
        after: UUID | None = None,
    ) -> list[GridAssetEvent]:
        """
        List an asset's events oldest first.

        ``after`` resumes from a previously seen event of the same asset;
        events appended later extend the sequence without reordering what was
        already returned. An ``after`` that is not one of the asset's events
        yields nothing.
        """
        query = select(GridAssetEventTable).where(
            GridAssetEventTable.tenant_id == tenant_id,
            GridAssetEventTable.asset_id == asset_id,
        )

        if after:
            cursor_result = await self.session.execute(
                select(
                    GridAssetEventTable.created_at,
                    GridAssetEventTable.asset_version,
                    GridAssetEventTable.event_id,
                ).where(
                    GridAssetEventTable.tenant_id == tenant_id,
                    GridAssetEventTable.asset_id == asset_id,
                    GridAssetEventTable.event_id == after,
                )
            )
            cursor_row = cursor_result.one_or_none()
            if cursor_row:
                seen_at, seen_version, seen_id = cursor_row
                query = query.where(
                    or_(
                        GridAssetEventTable.created_at > seen_at,
                        and_(
                            GridAssetEventTable.created_at == seen_at,
                            GridAssetEventTable.asset_version > seen_version,
                        ),
                        and_(
                            GridAssetEventTable.created_at == seen_at,
                            GridAssetEventTable.asset_version == seen_version,
                            GridAssetEventTable.event_id > seen_id,
                        ),
                    )
                )
            else:
                return []

        query = query.order_by(
            GridAssetEventTable.created_at.asc(),
            GridAssetEventTable.asset_version.asc(),
            GridAssetEventTable.event_id.asc(),
        )
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def count_by_asset(self, tenant_id: UUID, asset_id: UUID) -> int:
        """Number of events recorded for an asset."""
        result = await self.session.execute(
            select(func.count()).select_from(GridAssetEventTable).where(
                GridAssetEventTable.tenant_id == tenant_id,
                GridAssetEventTable.asset_id == asset_id,
            )
        )
        return int(result.scalar_one())

    def _row_to_model(self, row: GridAssetEventTable) -> GridAssetEvent:
        return GridAssetEvent(
            event_id=row.event_id,
            tenant_id=row.tenant_id,
            asset_id=row.asset_id,
            asset_version=row.asset_version,
            event_type=row.event_type,
            before_state=row.before_state,
            after_state=row.after_state,
            message=row.message,
            created_by_user_id=row.created_by_user_id,
            created_at=as_utc(row.created_at),
        )
