"""
db/models/report.py

Stored sighting reports, one row per dedupe key.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin

REPORTS_TABLE = "reports"
DEDUPE_CONSTRAINT = "uq_reports_dedupe_key"


class Report(Base, TimestampMixin):
    __tablename__ = REPORTS_TABLE

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    dedupe_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of source, date, coordinates and description",
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date_event: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="ISO-8601 date or timestamp",
    )
    city: Mapped[str | None] = mapped_column(String(255), nullable=True)
    state: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    shape: Mapped[str | None] = mapped_column(String(120), nullable=True)
    duration: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_name: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="NUFORC, GEIPAN, MUFON, USER",
    )
    geocode_failed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last geocoding lookup that found no usable match",
    )

    __table_args__ = (
        UniqueConstraint("dedupe_key", name=DEDUPE_CONSTRAINT),
        Index("ix_reports_source_name", "source_name"),
        Index("ix_reports_date_event", "date_event"),
        Index("ix_reports_country", "country"),
        Index(
            "ix_reports_missing_coordinates",
            "created_at",
            postgresql_where=text("latitude IS NULL AND address IS NOT NULL"),
        ),
    )
