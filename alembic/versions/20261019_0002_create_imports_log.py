"""create imports_log table

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 09:20:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "imports_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_name", sa.String(length=32), nullable=False),
        sa.Column("locator", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("parsed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("normalized_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inserted_or_updated_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_kind", sa.String(length=64), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("errors_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_imports_log"),
    )
    op.create_index("ix_imports_log_source_name", "imports_log", ["source_name"], unique=False)
    op.create_index("ix_imports_log_status", "imports_log", ["status"], unique=False)
    op.create_index(
        "ix_imports_log_source_started",
        "imports_log",
        ["source_name", "started_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_imports_log_source_started", table_name="imports_log")
    op.drop_index("ix_imports_log_status", table_name="imports_log")
    op.drop_index("ix_imports_log_source_name", table_name="imports_log")
    op.drop_table("imports_log")
