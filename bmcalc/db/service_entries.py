"""Persistence of recorded service entries."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bmcalc.db.models import ServiceEntryModel
from bmcalc.exceptions import NotFoundError
from bmcalc.models import Location, ServiceEntry, Side


def _row_to_entry(row: ServiceEntryModel) -> ServiceEntry:
    return ServiceEntry(
        id=row.id,
        activity_id=row.activity_id,
        price_item_id=row.price_item_id,
        code=row.code,
        description=row.description,
        quantity=row.quantity,
        unit=row.unit,
        unit_price=row.unit_price,
        total_value=row.total_value,
        date=row.date,
        contractor=row.contractor,
        fiscal=row.fiscal,
        job_site=row.job_site,
        location=row.location,
        location_detail=Location(
            km_start=row.km_start,
            km_end=row.km_end,
            station_start=row.station_start,
            station_end=row.station_end,
            lane=row.lane,
            side=Side(row.side) if row.side else None,
            stretch=row.stretch,
            segment=row.segment,
        ),
        notes=row.notes,
        matched=row.matched,
        created_at=row.created_at,
    )


def _entry_to_row(entry: ServiceEntry) -> ServiceEntryModel:
    detail = entry.location_detail
    return ServiceEntryModel(
        id=entry.id,
        activity_id=entry.activity_id,
        price_item_id=entry.price_item_id,
        code=entry.code,
        description=entry.description,
        quantity=entry.quantity,
        unit=entry.unit,
        unit_price=entry.unit_price,
        total_value=entry.total_value,
        date=entry.date,
        contractor=entry.contractor,
        fiscal=entry.fiscal,
        job_site=entry.job_site,
        location=entry.location,
        km_start=detail.km_start,
        km_end=detail.km_end,
        station_start=detail.station_start,
        station_end=detail.station_end,
        lane=detail.lane,
        side=detail.side.value if detail.side else None,
        stretch=detail.stretch,
        segment=detail.segment,
        notes=entry.notes,
        matched=entry.matched,
    )


async def add_service_entries(
    session: AsyncSession, entries: Iterable[ServiceEntry]
) -> list[ServiceEntry]:
    """Insert entries as given; ``total_value`` is stored, never recomputed."""
    rows = [_entry_to_row(entry) for entry in entries]
    session.add_all(rows)
    await session.flush()
    return [_row_to_entry(row) for row in rows]


async def add_service_entry(session: AsyncSession, entry: ServiceEntry) -> ServiceEntry:
    (saved,) = await add_service_entries(session, [entry])
    return saved


async def list_service_entries(
    session: AsyncSession,
    activity_id: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> list[ServiceEntry]:
    """Entries ordered by date; contractor filtering is left to the aggregator."""
    stmt = select(ServiceEntryModel).order_by(
        ServiceEntryModel.date, ServiceEntryModel.created_at
    )
    if activity_id is not None:
        stmt = stmt.where(ServiceEntryModel.activity_id == activity_id)
    if start:
        stmt = stmt.where(ServiceEntryModel.date >= start)
    if end:
        stmt = stmt.where(ServiceEntryModel.date <= end)

    result = await session.execute(stmt)
    return [_row_to_entry(row) for row in result.scalars().all()]


async def delete_service_entry(session: AsyncSession, entry_id: UUID) -> None:
    row = await session.get(ServiceEntryModel, entry_id)
    if row is None:
        raise NotFoundError(f"Lançamento não encontrado: {entry_id}")
    await session.delete(row)
    await session.flush()


async def delete_entries_for_activity(session: AsyncSession, activity_id: str) -> int:
    result = await session.execute(
        delete(ServiceEntryModel).where(ServiceEntryModel.activity_id == activity_id)
    )
    await session.flush()
    return result.rowcount or 0
