"""stock issues + issue comments

Revision ID: 0002_stock_issues
Revises: 0001_stocktake_init
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0002_stock_issues"
down_revision = "0001_stocktake_init"
branch_labels = None
depends_on = None

_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade():
    op.create_table(
        "stock_issues",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Text(), nullable=False),
        sa.Column(
            "session_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="open"),
        sa.Column("priority", sa.Text(), nullable=False, server_default="medium"),
        sa.Column("classification", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("zone", sa.Text(), nullable=True),
        sa.Column(
            "item_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_items.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("reporter_id", sa.Text(), nullable=True),
        sa.Column("reporter_name", sa.Text(), nullable=True),
        sa.Column("assignee_id", sa.Text(), nullable=True),
        sa.Column("assignee_name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('open','in_progress','resolved','closed')", name="ck_stock_issues_status"
        ),
        sa.CheckConstraint(
            "priority IN ('low','medium','high','critical')", name="ck_stock_issues_priority"
        ),
    )
    op.create_index("ix_stock_issues_organization_id", "stock_issues", ["organization_id"])
    op.create_index("ix_stock_issues_org_status", "stock_issues", ["organization_id", "status"])
    op.create_index("ix_stock_issues_org_time", "stock_issues", ["organization_id", "created_at", "id"])

    op.create_table(
        "stock_issue_comments",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column(
            "issue_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_issues.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("user_name", sa.Text(), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_stock_issue_comments_issue_id", "stock_issue_comments", ["issue_id"])


def downgrade():
    op.drop_table("stock_issue_comments")
    op.drop_table("stock_issues")
