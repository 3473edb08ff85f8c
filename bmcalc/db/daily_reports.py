"""Daily activity reports (RDA) and their month summary."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bmcalc.db.models import DailyReportModel, ServiceEntryModel
from bmcalc.db.service_entries import delete_entries_for_activity
from bmcalc.exceptions import NotFoundError
from bmcalc.models import DailyReport, MonthSummary

logger = logging.getLogger(__name__)

LoadMode = Literal["merge", "replace"]

_REPORT_FIELDS = (
    "date",
    "weekday",
    "fiscal",
    "contractor",
    "job_site",
    "work_front",
    "weather",
    "crew_total",
    "equipment_total",
    "activities",
    "notes",
)


def _row_to_report(row: DailyReportModel) -> DailyReport:
    return DailyReport(
        id=row.id,
        created_at=row.created_at,
        **{name: getattr(row, name) for name in _REPORT_FIELDS},
    )


def _report_to_row(report: DailyReport) -> DailyReportModel:
    return DailyReportModel(
        id=report.id,
        created_at=report.created_at,
        **{name: getattr(report, name) for name in _REPORT_FIELDS},
    )


async def add_daily_report(session: AsyncSession, report: DailyReport) -> DailyReport:
    row = _report_to_row(report)
    session.add(row)
    await session.flush()
    return _row_to_report(row)


async def get_daily_report(session: AsyncSession, report_id: UUID) -> DailyReport:
    row = await session.get(DailyReportModel, report_id)
    if row is None:
        raise NotFoundError(f"Relatório não encontrado: {report_id}")
    return _row_to_report(row)


async def list_daily_reports(
    session: AsyncSession, month: str | None = None
) -> list[DailyReport]:
    """Reports newest first; ``month`` is ``YYYY-MM``."""
    stmt = select(DailyReportModel).order_by(DailyReportModel.date.desc())
    if month:
        stmt = stmt.where(DailyReportModel.date.startswith(month))
    result = await session.execute(stmt)
    return [_row_to_report(row) for row in result.scalars().all()]


async def update_daily_report(
    session: AsyncSession, report_id: UUID, **changes
) -> DailyReport:
    unknown = set(changes) - set(_REPORT_FIELDS)
    if unknown:
        raise ValueError(f"Campos não editáveis: {sorted(unknown)}")

    row = await session.get(DailyReportModel, report_id)
    if row is None:
        raise NotFoundError(f"Relatório não encontrado: {report_id}")
    for name, value in changes.items():
        setattr(row, name, value)
    await session.flush()
    return _row_to_report(row)


async def delete_daily_report(session: AsyncSession, report_id: UUID) -> int:
    """Delete a report and every service entry recorded from it.

    Returns:
        Number of service entries removed
    """
    row = await session.get(DailyReportModel, report_id)
    if row is None:
        raise NotFoundError(f"Relatório não encontrado: {report_id}")

    removed = await delete_entries_for_activity(session, str(report_id))
    await session.delete(row)
    await session.flush()
    logger.info(f"Deleted report {report_id} and {removed} service entries")
    return removed


async def load_daily_reports(
    session: AsyncSession,
    reports: Iterable[DailyReport],
    mode: LoadMode = "merge",
) -> int:
    """Bulk load reports (e.g. from a backup).

    ``merge`` upserts by id and keeps other reports; ``replace`` wipes all
    reports and service entries first.

    Returns:
        Number of reports written
    """
    if mode not in ("merge", "replace"):
        raise ValueError(f"Unknown load mode: {mode}")

    if mode == "replace":
        await session.execute(delete(ServiceEntryModel))
        await session.execute(delete(DailyReportModel))
        await session.flush()

    count = 0
    for report in reports:
        existing = await session.get(DailyReportModel, report.id)
        if existing is None:
            session.add(_report_to_row(report))
        else:
            for name in _REPORT_FIELDS:
                setattr(existing, name, getattr(report, name))
        count += 1

    await session.flush()
    logger.info(f"Loaded {count} daily reports ({mode})")
    return count


def summarize_month(reports: Iterable[DailyReport], month: str) -> MonthSummary:
    """Headline numbers for reports whose date starts with ``month`` (``YYYY-MM``)."""
    selected = [report for report in reports if report.date.startswith(month)]

    def distinct(values: Iterable[str]) -> list[str]:
        return sorted({value for value in values if value})

    return MonthSummary(
        total_reports=len(selected),
        total_crew=sum(report.crew_total for report in selected),
        total_equipment=sum(report.equipment_total for report in selected),
        contractors=distinct(report.contractor for report in selected),
        job_sites=distinct(report.job_site for report in selected),
        fiscals=distinct(report.fiscal for report in selected),
    )
