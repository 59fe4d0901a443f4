"""create reports table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reports",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dedupe_key", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date_event", sa.String(length=32), nullable=True),
        sa.Column("city", sa.String(length=255), nullable=True),
        sa.Column("state", sa.String(length=255), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("shape", sa.String(length=120), nullable=True),
        sa.Column("duration", sa.String(length=255), nullable=True),
        sa.Column("source_name", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_reports"),
        sa.UniqueConstraint("dedupe_key", name="uq_reports_dedupe_key"),
    )
    op.create_index("ix_reports_source_name", "reports", ["source_name"], unique=False)
    op.create_index("ix_reports_date_event", "reports", ["date_event"], unique=False)
    op.create_index("ix_reports_country", "reports", ["country"], unique=False)
    op.create_index(
        "ix_reports_missing_coordinates",
        "reports",
        ["created_at"],
        unique=False,
        postgresql_where=sa.text("latitude IS NULL AND address IS NOT NULL"),
    )


def downgrade() -> None:
    op.drop_index("ix_reports_missing_coordinates", table_name="reports")
    op.drop_index("ix_reports_country", table_name="reports")
    op.drop_index("ix_reports_date_event", table_name="reports")
    op.drop_index("ix_reports_source_name", table_name="reports")
    op.drop_table("reports")
