"""add content versions and content hypotheses

Revision ID: 8e4c6a1d9f27
Revises: 5b7d2e8f1c43
Create Date: 2026-09-08

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "8e4c6a1d9f27"
down_revision: Union[str, Sequence[str], None] = "5b7d2e8f1c43"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    if "journey_content_versions" not in existing_tables:
        op.create_table(
            "journey_content_versions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("page_id", sa.Integer(), nullable=False),
            sa.Column("version_number", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("hypothesis", sa.Text(), nullable=False),
            sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("created_by_user_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["page_id"], ["journey_pages.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("page_id", "version_number", name="uq_content_versions_page_version"),
        )
        # One current version per page.
        op.create_index(
            "uq_content_versions_current",
            "journey_content_versions",
            ["page_id"],
            unique=True,
            sqlite_where=sa.text("is_current = 1"),
            postgresql_where=sa.text("is_current"),
        )

    if "content_hypotheses" not in existing_tables:
        op.create_table(
            "content_hypotheses",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("journey_page_id", sa.Integer(), nullable=False),
            sa.Column("content_version_id", sa.Integer(), nullable=True),
            sa.Column("hypothesis", sa.Text(), nullable=False),
            sa.Column("change_type", sa.String(length=20), nullable=False),
            sa.Column("predicted_outcome", sa.Text(), nullable=True),
            sa.Column("confidence_level", sa.Integer(), nullable=True),
            sa.Column("previous_content", sa.Text(), nullable=True),
            sa.Column("new_content", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("created_by", sa.String(length=320), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("outcome_recorded_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("actual_outcome", sa.Text(), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["journey_page_id"], ["journey_pages.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["content_version_id"], ["journey_content_versions.id"], ondelete="SET NULL"),
            sa.CheckConstraint(
                "change_type IN ('content', 'title', 'both', 'structure')",
                name="ck_content_hypotheses_change_type",
            ),
            sa.CheckConstraint(
                "confidence_level IS NULL OR (confidence_level BETWEEN 1 AND 10)",
                name="ck_content_hypotheses_confidence",
            ),
            sa.CheckConstraint(
                "status IN ('active', 'validated', 'invalidated', 'cancelled')",
                name="ck_content_hypotheses_status",
            ),
        )
        op.create_index("idx_content_hypotheses_page", "content_hypotheses", ["journey_page_id", "created_at"])
        op.create_index("idx_content_hypotheses_status", "content_hypotheses", ["status"])
        op.create_index("idx_content_hypotheses_change_type", "content_hypotheses", ["change_type"])


def downgrade() -> None:
    op.drop_table("content_hypotheses")
    op.drop_index("uq_content_versions_current", table_name="journey_content_versions")
    op.drop_table("journey_content_versions")
