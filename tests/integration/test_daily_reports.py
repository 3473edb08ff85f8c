"""Integration tests for daily reports and recorded service entries."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bmcalc.db.daily_reports import (
    add_daily_report,
    delete_daily_report,
    get_daily_report,
    list_daily_reports,
    load_daily_reports,
    summarize_month,
    update_daily_report,
)
from bmcalc.db.price_queries import add_price_item, load_catalog, update_price_item
from bmcalc.db.service_entries import (
    add_service_entries,
    delete_service_entry,
    list_service_entries,
)
from bmcalc.exceptions import NotFoundError
from bmcalc.ingestion.report_sheets import read_report_sheet
from bmcalc.matching import InMemoryMatchHistory, ServiceReconciler
from bmcalc.models import DailyReport, Location, ServiceOccurrence, Side


def _report(date: str = "2024-03-01", **overrides) -> DailyReport:
    values = {
        "date": date,
        "weekday": "SEXTA-FEIRA",
        "fiscal": "João Silva",
        "contractor": "CONSTRUTORA EXEMPLO LTDA",
        "job_site": "SP-055",
        "activities": "Reboco da fachada norte",
        "crew_total": 12,
        "equipment_total": 3,
    }
    values.update(overrides)
    return DailyReport(**values)


async def _record(session: AsyncSession, report: DailyReport, occurrences: list[ServiceOccurrence]):
    catalog = await load_catalog(session, report.contractor)
    reconciler = ServiceReconciler(catalog, InMemoryMatchHistory())
    drafts = reconciler.reconcile_all(occurrences)
    entries = [ServiceReconciler.to_entry(draft, report.context()) for draft in drafts]
    return await add_service_entries(session, entries)


@pytest.mark.asyncio
async def test_entry_total_frozen_after_price_change(db_session: AsyncSession, sample_price_item):
    """Editing the catalog price never changes an entry already recorded."""
    item = await add_price_item(db_session, sample_price_item)
    report = await add_daily_report(db_session, _report())

    (entry,) = await _record(
        db_session,
        report,
        [ServiceOccurrence(description="reboco", quantity=Decimal("10"), raw_code="BSO-01")],
    )
    assert entry.total_value == Decimal("455.00")

    await update_price_item(db_session, item.id, unit_price=Decimal("99.00"))
    await db_session.commit()

    (stored,) = await list_service_entries(db_session, activity_id=str(report.id))
    assert stored.unit_price == Decimal("45.50")
    assert stored.total_value == Decimal("455.00")
    assert stored.price_item_id == item.id


@pytest.mark.asyncio
async def test_location_detail_round_trip(db_session: AsyncSession):
    report = await add_daily_report(db_session, _report())
    occurrence = ServiceOccurrence(
        description="Pintura de faixa",
        quantity=Decimal("120"),
        unit="m",
        location_detail=Location(km_start="172+500", km_end="173+200", lane="2", side=Side.RIGHT),
    )

    await _record(db_session, report, [occurrence])

    (stored,) = await list_service_entries(db_session)
    assert stored.matched is False
    assert stored.location_detail.side == Side.RIGHT
    assert stored.location_detail.describe() == "km 172+500 a 173+200 | faixa 2 | lado D"


@pytest.mark.asyncio
async def test_delete_report_cascades_to_entries(db_session: AsyncSession, sample_price_item):
    await add_price_item(db_session, sample_price_item)
    kept = await add_daily_report(db_session, _report("2024-03-02"))
    dropped = await add_daily_report(db_session, _report("2024-03-01"))
    occurrence = ServiceOccurrence(description="reboco", quantity=Decimal("1"), raw_code="BSO-01")
    await _record(db_session, kept, [occurrence])
    await _record(db_session, dropped, [occurrence, occurrence])

    removed = await delete_daily_report(db_session, dropped.id)

    assert removed == 2
    remaining = await list_service_entries(db_session)
    assert [entry.activity_id for entry in remaining] == [str(kept.id)]
    with pytest.raises(NotFoundError):
        await get_daily_report(db_session, dropped.id)


@pytest.mark.asyncio
async def test_list_entries_by_period(db_session: AsyncSession):
    for date in ("2024-02-28", "2024-03-01", "2024-03-15"):
        report = await add_daily_report(db_session, _report(date))
        await _record(db_session, report, [ServiceOccurrence(description="limpeza")])

    entries = await list_service_entries(db_session, start="2024-03-01", end="2024-03-31")

    assert [entry.date for entry in entries] == ["2024-03-01", "2024-03-15"]


@pytest.mark.asyncio
async def test_delete_single_entry(db_session: AsyncSession):
    report = await add_daily_report(db_session, _report())
    (entry,) = await _record(db_session, report, [ServiceOccurrence(description="limpeza")])

    await delete_service_entry(db_session, entry.id)

    assert await list_service_entries(db_session) == []
    with pytest.raises(NotFoundError):
        await delete_service_entry(db_session, entry.id)


@pytest.mark.asyncio
async def test_list_and_update_reports(db_session: AsyncSession):
    await add_daily_report(db_session, _report("2024-02-28"))
    march = await add_daily_report(db_session, _report("2024-03-05"))

    reports = await list_daily_reports(db_session, month="2024-03")
    assert [report.id for report in reports] == [march.id]

    updated = await update_daily_report(db_session, march.id, weather="Chuva", crew_total=8)
    assert updated.weather == "Chuva"
    assert updated.crew_total == 8

    with pytest.raises(ValueError):
        await update_daily_report(db_session, march.id, id="other")


@pytest.mark.asyncio
async def test_load_reports_merge_and_replace(db_session: AsyncSession):
    existing = await add_daily_report(db_session, _report("2024-03-01"))
    await _record(db_session, existing, [ServiceOccurrence(description="limpeza")])

    changed = existing.model_copy(update={"notes": "revisado"})
    loaded = await load_daily_reports(db_session, [changed, _report("2024-03-02")], mode="merge")

    assert loaded == 2
    reports = await list_daily_reports(db_session)
    assert len(reports) == 2
    assert (await get_daily_report(db_session, existing.id)).notes == "revisado"
    assert len(await list_service_entries(db_session)) == 1

    await load_daily_reports(db_session, [_report("2024-04-01")], mode="replace")

    reports = await list_daily_reports(db_session)
    assert [report.date for report in reports] == ["2024-04-01"]
    assert await list_service_entries(db_session) == []

    with pytest.raises(ValueError):
        await load_daily_reports(db_session, [], mode="append")


def test_summarize_month():
    reports = [
        _report("2024-03-01"),
        _report("2024-03-02", contractor="PAVIMENTA S.A.", fiscal="", crew_total=5),
        _report("2024-04-01"),
    ]

    summary = summarize_month(reports, "2024-03")

    assert summary.total_reports == 2
    assert summary.total_crew == 17
    assert summary.total_equipment == 6
    assert summary.contractors == ["CONSTRUTORA EXEMPLO LTDA", "PAVIMENTA S.A."]
    assert summary.fiscals == ["João Silva"]
    assert summary.job_sites == ["SP-055"]


@pytest.mark.asyncio
async def test_import_report_spreadsheet(db_session: AsyncSession):
    """Spreadsheet rows become stored reports alongside the existing ones."""
    await add_daily_report(db_session, _report("2024-02-28"))
    content = (
        "Data;Empresa;Obra;Atividades;Mão de obra;Equipamentos\n"
        "01/03/2024;CONSTRUTORA EXEMPLO LTDA;SP-055;Reboco;12;3\n"
        "02/03/2024;CONSTRUTORA EXEMPLO LTDA;SP-055;Chapisco;8;2\n"
    ).encode("utf-8")

    sheet = read_report_sheet(content, "rdas.csv")
    loaded = await load_daily_reports(db_session, sheet.reports, mode="merge")

    assert loaded == 2
    reports = await list_daily_reports(db_session, month="2024-03")
    assert sorted(report.date for report in reports) == ["2024-03-01", "2024-03-02"]
    assert len(await list_daily_reports(db_session)) == 3
    assert summarize_month(reports, "2024-03").total_crew == 20
