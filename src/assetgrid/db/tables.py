"""SQLAlchemy table definitions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from assetgrid.db.base import Base
from assetgrid.models.enums import GridAssetEventType, GridAssetStatus

# JSONB on Postgres, plain JSON elsewhere (SQLite test databases)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class SiteTable(Base):
    """Sites table - owners of asset inventories."""

    __tablename__ = "sites"

    site_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    tenant_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    client: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_sites_tenant_name", "tenant_id", "name"),
    )


class GridAssetTable(Base):
    """Grid assets table - versioned records mutated only by conditional writes."""

    __tablename__ = "grid_assets"

    asset_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    tenant_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    site_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("sites.site_id", ondelete="CASCADE"), nullable=False
    )

    # Identity
    asset_key: Mapped[str] = mapped_column(String(100), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(100), nullable=False)
    industry: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Work state
    status: Mapped[GridAssetStatus] = mapped_column(
        Enum(GridAssetStatus, name="grid_asset_status", values_callable=_enum_values),
        nullable=False,
        default=GridAssetStatus.NOT_STARTED,
    )
    planned_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Assignment
    assigned_to_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_to_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_to_avatar: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Auditing
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_updated_by_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    meta: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "site_id", "asset_type", "asset_key", name="uq_grid_asset_key"
        ),
        # Index for the site grid listing
        Index("idx_grid_assets_site", "tenant_id", "site_id", "asset_key"),
        # Index for the assignee projection sync
        Index("idx_grid_assets_assignee", "tenant_id", "assigned_to_user_id"),
    )


class GridAssetEventTable(Base):
    """Grid asset events table - append-only history."""

    __tablename__ = "grid_asset_events"

    event_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    tenant_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    # History goes with the asset if an asset is ever deleted
    asset_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("grid_assets.asset_id", ondelete="CASCADE"), nullable=False
    )
    asset_version: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[GridAssetEventType] = mapped_column(
        Enum(GridAssetEventType, name="grid_asset_event_type", values_callable=_enum_values),
        nullable=False,
    )
    before_state: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    after_state: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_grid_asset_events_asset", "tenant_id", "asset_id", "created_at", "asset_version"),
    )
