"""add reports.geocode_failed_at

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 11:05:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "reports",
        sa.Column(
            "geocode_failed_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Last geocoding lookup that found no usable match",
        ),
    )


def downgrade() -> None:
    op.drop_column("reports", "geocode_failed_at")
