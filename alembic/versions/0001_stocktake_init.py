"""stocktake baseline: items / sessions / activity / profiles / zone assignments

Revision ID: 0001_stocktake_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_stocktake_init"
down_revision = None
branch_labels = None
depends_on = None

_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade():
    op.create_table(
        "stock_sessions",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_paused_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("status IN ('live','paused','completed')", name="ck_stock_sessions_status"),
    )
    op.create_index("ix_stock_sessions_organization_id", "stock_sessions", ["organization_id"])

    op.create_table(
        "stock_items",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Text(), nullable=False),
        sa.Column("sku", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("barcode", sa.Text(), nullable=True),
        sa.Column("expected_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("counted_qty", sa.Integer(), nullable=True),
        sa.Column("variance", sa.Integer(), nullable=True),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("warehouse", sa.Text(), nullable=True),
        sa.Column("uom", sa.Text(), nullable=True),
        sa.Column("supplier", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("last_counted_by", sa.Text(), nullable=True),
        sa.Column("last_counted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("organization_id", "sku", name="uq_stock_items_org_sku"),
        sa.CheckConstraint(
            "status IN ('pending','counted','variance','verified')", name="ck_stock_items_status"
        ),
        sa.CheckConstraint("expected_qty >= 0", name="ck_stock_items_expected_nonneg"),
    )
    op.create_index("ix_stock_items_organization_id", "stock_items", ["organization_id"])
    op.create_index("ix_stock_items_barcode", "stock_items", ["barcode"])
    op.create_index(
        "ix_stock_items_org_location_status", "stock_items", ["organization_id", "location", "status"]
    )

    op.create_table(
        "stock_activity",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Text(), nullable=True),
        sa.Column(
            "session_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("user_name", sa.Text(), nullable=True),
        sa.Column("zone", sa.Text(), nullable=True),
        sa.Column(
            "item_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_items.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "type IN ('count','variance','verify','join','zone_complete')", name="ck_stock_activity_type"
        ),
    )
    op.create_index("ix_stock_activity_organization_id", "stock_activity", ["organization_id"])
    op.create_index("ix_stock_activity_org_time", "stock_activity", ["organization_id", "created_at", "id"])
    op.create_index(
        "ix_stock_activity_session_type_zone", "stock_activity", ["session_id", "type", "zone"]
    )
    # 同一会话同一 zone 最多一条 zone_complete：并发越线时由这里兜底
    op.create_index(
        "uq_stock_activity_zone_complete",
        "stock_activity",
        ["session_id", "zone"],
        unique=True,
        postgresql_where=sa.text("type = 'zone_complete'"),
        sqlite_where=sa.text("type = 'zone_complete'"),
    )

    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
    )

    op.create_table(
        "zone_assignments",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Text(), nullable=False),
        sa.Column("zone_code", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.UniqueConstraint("organization_id", "zone_code", name="uq_zone_assignments_org_zone"),
    )


def downgrade():
    op.drop_table("zone_assignments")
    op.drop_table("user_profiles")
    op.drop_index("uq_stock_activity_zone_complete", table_name="stock_activity")
    op.drop_table("stock_activity")
    op.drop_table("stock_items")
    op.drop_table("stock_sessions")
