"""SQLAlchemy table definitions for plots, submissions and sync state."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, Index, String, Text, TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime, stored naive-UTC on SQLite."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all PlotGuard tables."""

    type_annotation_map = {
        datetime: UTCDateTime(),
    }


class PlotRow(Base):
    """Persisted plot with cached bounding-box columns.

    The ``(region, min_lon)`` and ``(region, min_lat)`` composite indexes
    serve the same-region bounding-box range query.
    """

    __tablename__ = "plots"
    __table_args__ = (
        Index("idx_plots_region_min_lon", "region", "min_lon"),
        Index("idx_plots_region_min_lat", "region", "min_lat"),
        Index("idx_plots_instance_name", "instance_name"),
        Index("idx_plots_submission_id", "submission_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255))
    instance_name: Mapped[str] = mapped_column(String(255))
    polygon_wkt: Mapped[str] = mapped_column(Text)
    min_lat: Mapped[float] = mapped_column(Float)
    max_lat: Mapped[float] = mapped_column(Float)
    min_lon: Mapped[float] = mapped_column(Float)
    max_lon: Mapped[float] = mapped_column(Float)
    is_draft: Mapped[bool] = mapped_column(Boolean, default=True)
    form_id: Mapped[str] = mapped_column(String(64))
    region: Mapped[str] = mapped_column(String(255), default="")
    sub_region: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime]
    submission_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class SubmissionRow(Base):
    """Raw form response; ``raw_payload`` keeps the full JSON text."""

    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_form_time", "form_id", "submitted_at"),
        Index("idx_submissions_instance_name", "instance_name"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    form_id: Mapped[str] = mapped_column(String(64))
    external_id: Mapped[str] = mapped_column(String(64))
    submitted_at: Mapped[datetime]
    submitted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    instance_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    raw_payload: Mapped[str] = mapped_column(Text)
    auxiliary_data: Mapped[str | None] = mapped_column(Text, nullable=True)


class FormSyncStateRow(Base):
    """Delta-sync watermark per form."""

    __tablename__ = "form_sync_state"

    form_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_sync_timestamp: Mapped[datetime]
