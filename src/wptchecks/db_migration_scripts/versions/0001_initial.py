"""Initial check store schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "check_suites",
        sa.Column("sha", sa.String(), nullable=False),
        sa.Column("owner", sa.String(), nullable=False),
        sa.Column("repo", sa.String(), nullable=False),
        sa.Column("app_id", sa.Integer(), nullable=False),
        sa.Column("installation_id", sa.Integer(), nullable=False),
        sa.Column("pr_numbers_json", sa.String(), nullable=False),
        sa.Column("created_at", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("sha", "owner", "repo", "app_id"),
    )

    op.create_table(
        "test_runs",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("browser_name", sa.String(), nullable=False),
        sa.Column("browser_version", sa.String(), nullable=True),
        sa.Column("os_name", sa.String(), nullable=True),
        sa.Column("os_version", sa.String(), nullable=True),
        sa.Column("full_revision_hash", sa.String(), nullable=False),
        sa.Column("labels_json", sa.String(), nullable=False),
        sa.Column("results_url", sa.String(), nullable=True),
        sa.Column("time_start", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_test_runs_revision_browser",
        "test_runs",
        ["full_revision_hash", "browser_name"],
    )


def downgrade() -> None:
    op.drop_index("idx_test_runs_revision_browser", table_name="test_runs")
    op.drop_table("test_runs")
    op.drop_table("check_suites")
