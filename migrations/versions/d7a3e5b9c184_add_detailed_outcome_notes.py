"""add detailed outcome note columns

Revision ID: d7a3e5b9c184
Revises: c2f9b7e3a615
Create Date: 2026-10-18

Timeline, behaviour, revenue, competitive and actionable notes per outcome.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "d7a3e5b9c184"
down_revision: Union[str, Sequence[str], None] = "c2f9b7e3a615"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NEW_COLUMNS = (
    "timeline_notes",
    "behavior_observations",
    "revenue_intelligence",
    "competitive_notes",
    "actionable_insights",
)


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    if not insp.has_table("journey_outcomes"):
        return

    cols = {c["name"] for c in insp.get_columns("journey_outcomes")}
    missing = [name for name in NEW_COLUMNS if name not in cols]
    if missing:
        with op.batch_alter_table("journey_outcomes") as batch_op:
            for name in missing:
                batch_op.add_column(sa.Column(name, sa.Text(), nullable=True))


def downgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    if not insp.has_table("journey_outcomes"):
        return

    cols = {c["name"] for c in insp.get_columns("journey_outcomes")}
    present = [name for name in NEW_COLUMNS if name in cols]
    if present:
        with op.batch_alter_table("journey_outcomes") as batch_op:
            for name in present:
                batch_op.drop_column(name)
