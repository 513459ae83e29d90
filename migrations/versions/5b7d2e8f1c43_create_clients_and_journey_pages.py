"""create clients and journey pages

Revision ID: 5b7d2e8f1c43
Revises: 3f1a9c2e7b10
Create Date: 2026-09-01

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "5b7d2e8f1c43"
down_revision: Union[str, Sequence[str], None] = "3f1a9c2e7b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    if "clients" not in existing_tables:
        op.create_table(
            "clients",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("company", sa.Text(), nullable=False),
            sa.Column("contact", sa.Text(), nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("position", sa.Text(), nullable=False),
            sa.Column("salary", sa.Text(), nullable=True),
            sa.Column("logo", sa.Text(), nullable=True),
            sa.Column("hypothesis", sa.Text(), nullable=False),
            sa.Column("token", sa.String(length=8), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("activated_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("journey_outcome", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("outcome_recorded_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("outcome_notes", sa.Text(), nullable=True),
            sa.Column("revenue_amount", sa.Numeric(10, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.UniqueConstraint("email", name="uq_clients_email"),
            sa.UniqueConstraint("token", name="uq_clients_token"),
            sa.CheckConstraint("status IN ('pending', 'activated')", name="ck_clients_status"),
        )
        op.create_index("idx_clients_status", "clients", ["status"])
        op.create_index("idx_clients_created_at", "clients", ["created_at"])
        op.create_index("idx_clients_journey_outcome", "clients", ["journey_outcome"])

    if "journey_pages" not in existing_tables:
        op.create_table(
            "journey_pages",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("page_type", sa.String(length=20), nullable=False),
            sa.Column("page_order", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("first_viewed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("last_viewed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("completed_at", sa.DateTime(timezone=False), nullable=True),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("client_id", "page_type", name="uq_journey_pages_client_page_type"),
            sa.UniqueConstraint("client_id", "page_order", name="uq_journey_pages_client_order"),
            sa.CheckConstraint(
                "page_type IN ('activation', 'agreement', 'confirmation', 'processing')",
                name="ck_journey_pages_page_type",
            ),
            sa.CheckConstraint(
                "status IN ('pending', 'active', 'completed', 'skipped')",
                name="ck_journey_pages_status",
            ),
        )
        op.create_index("idx_journey_pages_status", "journey_pages", ["status"])


def downgrade() -> None:
    op.drop_table("journey_pages")
    op.drop_table("clients")
