"""Initial asset grid schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create base tables and enums."""
    bind = op.get_bind()

    grid_asset_status = sa.Enum(
        "not_started",
        "in_progress",
        "complete",
        "blocked",
        "needs_review",
        name="grid_asset_status",
    )
    grid_asset_event_type = sa.Enum(
        "status_change",
        "field_update",
        "comment",
        "attachment",
        "assignment",
        name="grid_asset_event_type",
    )

    grid_asset_status.create(bind, checkfirst=True)
    grid_asset_event_type.create(bind, checkfirst=True)

    op.create_table(
        "sites",
        sa.Column("site_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("client", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="Active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_sites_tenant_name", "sites", ["tenant_id", "name"])

    op.create_table(
        "grid_assets",
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "site_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sites.site_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("asset_key", sa.String(length=100), nullable=False),
        sa.Column("asset_type", sa.String(length=100), nullable=False),
        sa.Column("industry", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            postgresql.ENUM(name="grid_asset_status", create_type=False),
            nullable=False,
            server_default="not_started",
        ),
        sa.Column("planned_count", sa.Integer(), nullable=True),
        sa.Column("completed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by_user_id", sa.String(length=255), nullable=True),
        sa.Column("assigned_to_user_id", sa.String(length=255), nullable=True),
        sa.Column("assigned_to_name", sa.String(length=255), nullable=True),
        sa.Column("assigned_to_avatar", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_updated_by_user_id", sa.String(length=255), nullable=True),
        sa.Column("meta", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.UniqueConstraint(
            "tenant_id", "site_id", "asset_type", "asset_key", name="uq_grid_asset_key"
        ),
    )
    op.create_index(
        "idx_grid_assets_site",
        "grid_assets",
        ["tenant_id", "site_id", "asset_key"],
    )
    op.create_index(
        "idx_grid_assets_assignee",
        "grid_assets",
        ["tenant_id", "assigned_to_user_id"],
    )

    op.create_table(
        "grid_asset_events",
        sa.Column("event_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "asset_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("grid_assets.asset_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("asset_version", sa.Integer(), nullable=False),
        sa.Column(
            "event_type",
            postgresql.ENUM(name="grid_asset_event_type", create_type=False),
            nullable=False,
        ),
        sa.Column("before_state", postgresql.JSONB, nullable=True),
        sa.Column("after_state", postgresql.JSONB, nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_grid_asset_events_asset",
        "grid_asset_events",
        ["tenant_id", "asset_id", "created_at", "asset_version"],
    )


def downgrade() -> None:
    """Drop all tables and enums."""
    op.drop_index("idx_grid_asset_events_asset", table_name="grid_asset_events")
    op.drop_table("grid_asset_events")

    op.drop_index("idx_grid_assets_assignee", table_name="grid_assets")
    op.drop_index("idx_grid_assets_site", table_name="grid_assets")
    op.drop_table("grid_assets")

    op.drop_index("idx_sites_tenant_name", table_name="sites")
    op.drop_table("sites")

    bind = op.get_bind()
    sa.Enum(name="grid_asset_event_type").drop(bind, checkfirst=True)
    sa.Enum(name="grid_asset_status").drop(bind, checkfirst=True)
