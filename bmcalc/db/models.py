"""SQLAlchemy async database models for BMCalc.

Maps to PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PriceSheetFileModel(Base):
    """Provenance of an imported price sheet (uploaded bytes + metadata)."""

    __tablename__ = "price_sheet_files"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    contractor: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    contract: Mapped[str | None] = mapped_column(Text)
    items_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )


class PriceItemModel(Base):
    """Priced service item of a contractor catalog."""

    __tablename__ = "price_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    code: Mapped[str] = mapped_column(Text, nullable=False)
    # Upper-case alphanumerics of ``code``; merge key within a contractor
    code_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="UN")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=0)

    category: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str | None] = mapped_column(Text)
    contractor: Mapped[str | None] = mapped_column(Text, index=True)
    contract: Mapped[str | None] = mapped_column(Text)

    sheet_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("price_sheet_files.id", ondelete="CASCADE"),
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="check_unit_price_non_negative"),
        Index("idx_price_items_contractor_code", "contractor", "code_key"),
    )


class ServiceEntryModel(Base):
    """One billed service occurrence; ``total_value`` is frozen at insert."""

    __tablename__ = "service_entries"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    activity_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # No FK: entries outlive the catalog item they were priced from
    price_item_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    code: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=0)
    total_value: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=0)

    date: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    contractor: Mapped[str] = mapped_column(Text, nullable=False, default="", index=True)
    fiscal: Mapped[str] = mapped_column(Text, nullable=False, default="")
    job_site: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Location (free text + structured linear position)
    location: Mapped[str] = mapped_column(Text, nullable=False, default="")
    km_start: Mapped[str | None] = mapped_column(Text)
    km_end: Mapped[str | None] = mapped_column(Text)
    station_start: Mapped[str | None] = mapped_column(Text)
    station_end: Mapped[str | None] = mapped_column(Text)
    lane: Mapped[str | None] = mapped_column(Text)
    side: Mapped[str | None] = mapped_column(Text)
    stretch: Mapped[str | None] = mapped_column(Text)
    segment: Mapped[str | None] = mapped_column(Text)

    notes: Mapped[str | None] = mapped_column(Text)
    matched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_service_entries_contractor_date", "contractor", "date"),
    )


class DailyReportModel(Base):
    """Daily activity report (RDA)."""

    __tablename__ = "daily_reports"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    date: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    weekday: Mapped[str] = mapped_column(Text, nullable=False, default="")
    fiscal: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contractor: Mapped[str] = mapped_column(Text, nullable=False, default="")
    job_site: Mapped[str] = mapped_column(Text, nullable=False, default="")
    work_front: Mapped[str] = mapped_column(Text, nullable=False, default="")
    weather: Mapped[str] = mapped_column(Text, nullable=False, default="Bom")

    crew_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    equipment_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    activities: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
