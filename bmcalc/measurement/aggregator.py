"""Measurement aggregation: service entries -> per-contractor bulletins."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from bmcalc.models import CodeRollup, MeasurementSummary, Period, ServiceEntry


def filter_entries(
    entries: Iterable[ServiceEntry],
    contractor: str | None = None,
    period: Period | None = None,
) -> list[ServiceEntry]:
    """Case-insensitive contractor substring and inclusive ISO date bounds.

    Empty period bounds are open.
    """
    needle = (contractor or "").strip().casefold()
    selected = []
    for entry in entries:
        if needle and needle not in entry.contractor.casefold():
            continue
        if period is not None:
            if period.start and entry.date < period.start:
                continue
            if period.end and entry.date > period.end:
                continue
        selected.append(entry)
    return selected


def summarize(
    entries: Iterable[ServiceEntry],
    contractor: str | None = None,
    period: Period | None = None,
) -> list[MeasurementSummary]:
    """Group filtered entries by exact contractor name.

    Each summary's period uses the explicit bounds when given, otherwise the
    earliest and latest entry dates of the group. Sorted by total, largest
    first.
    """
    groups: dict[str, list[ServiceEntry]] = {}
    for entry in filter_entries(entries, contractor, period):
        groups.setdefault(entry.contractor, []).append(entry)

    summaries = []
    for name, group in groups.items():
        dates = [entry.date for entry in group]
        first = group[0]
        summaries.append(
            MeasurementSummary(
                contractor=name,
                period=Period(
                    start=(period.start if period and period.start else min(dates)),
                    end=(period.end if period and period.end else max(dates)),
                ),
                entries=group,
                total_value=sum((entry.total_value for entry in group), Decimal("0")),
                job_site=first.job_site or None,
                fiscal=first.fiscal or None,
            )
        )

    summaries.sort(key=lambda summary: summary.total_value, reverse=True)
    return summaries


def group_by_code(entries: Iterable[ServiceEntry]) -> list[CodeRollup]:
    """Sum quantity and value per code; description, unit and price come from the first entry."""
    rollups: dict[str, CodeRollup] = {}
    for entry in entries:
        rollup = rollups.get(entry.code)
        if rollup is None:
            rollup = CodeRollup(
                code=entry.code,
                description=entry.description,
                unit=entry.unit,
                unit_price=entry.unit_price,
            )
            rollups[entry.code] = rollup
        rollup.quantity += entry.quantity
        rollup.total_value += entry.total_value

    return sorted(rollups.values(), key=lambda rollup: rollup.code)


def entries_for_export(summaries: Iterable[MeasurementSummary]) -> list[ServiceEntry]:
    """Detail rows of several summaries ordered by date, contractor and code."""
    entries = [entry for summary in summaries for entry in summary.entries]
    return sorted(entries, key=lambda entry: (entry.date, entry.contractor, entry.code))
