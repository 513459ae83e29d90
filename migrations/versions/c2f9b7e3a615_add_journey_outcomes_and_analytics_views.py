"""add journey outcomes and analytics views

Revision ID: c2f9b7e3a615
Revises: 8e4c6a1d9f27
Create Date: 2026-09-22

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

from app.genius.modules.analytics.views import create_view_statements, drop_view_statements


# revision identifiers, used by Alembic.
revision: str = "c2f9b7e3a615"
down_revision: Union[str, Sequence[str], None] = "8e4c6a1d9f27"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    if "journey_outcomes" not in existing_tables:
        op.create_table(
            "journey_outcomes",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("journey_outcome", sa.String(length=20), nullable=False),
            sa.Column("outcome_notes", sa.Text(), nullable=True),
            sa.Column("revenue_amount", sa.Numeric(10, 2), nullable=True),
            sa.Column("recorded_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("recorded_by", sa.String(length=320), nullable=True),
            sa.Column("journey_duration_days", sa.Integer(), nullable=True),
            sa.Column("pages_viewed", sa.Integer(), nullable=True),
            sa.Column("last_page_viewed", sa.String(length=20), nullable=True),
            sa.Column("original_hypothesis", sa.Text(), nullable=True),
            sa.Column("hypothesis_accuracy", sa.String(length=20), nullable=False, server_default="unknown"),
            sa.Column("conversion_factors", sa.Text(), nullable=True),
            sa.Column("missed_opportunities", sa.Text(), nullable=True),
            sa.Column("next_time_improvements", sa.Text(), nullable=True),
            sa.Column("confidence_in_analysis", sa.Integer(), nullable=True),
            sa.Column("outcome_tags", sa.Text(), nullable=True),
            sa.Column("learning_priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
            sa.CheckConstraint(
                "journey_outcome IN ('paid', 'ghosted', 'pending', 'negotiating', 'declined')",
                name="ck_journey_outcomes_outcome",
            ),
            sa.CheckConstraint("revenue_amount IS NULL OR revenue_amount >= 0", name="ck_journey_outcomes_revenue"),
            sa.CheckConstraint(
                "hypothesis_accuracy IN ('accurate', 'partially_accurate', 'inaccurate', 'unknown')",
                name="ck_journey_outcomes_accuracy",
            ),
            sa.CheckConstraint(
                "confidence_in_analysis IS NULL OR (confidence_in_analysis BETWEEN 1 AND 10)",
                name="ck_journey_outcomes_confidence",
            ),
            sa.CheckConstraint(
                "learning_priority IN ('low', 'medium', 'high')",
                name="ck_journey_outcomes_priority",
            ),
        )
        op.create_index("idx_journey_outcomes_client", "journey_outcomes", ["client_id", "recorded_at"])
        op.create_index("idx_journey_outcomes_outcome", "journey_outcomes", ["journey_outcome"])
        op.create_index("idx_journey_outcomes_accuracy", "journey_outcomes", ["hypothesis_accuracy"])

    for stmt in create_view_statements():
        op.execute(stmt)


def downgrade() -> None:
    for stmt in drop_view_statements():
        op.execute(stmt)
    op.drop_table("journey_outcomes")
