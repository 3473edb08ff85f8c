"""CSV export of service entry detail rows.

Uses ';' as delimiter and ',' as decimal separator so the file opens directly
in pt-BR spreadsheet software.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from io import StringIO

from bmcalc.models import ServiceEntry
from bmcalc.reporting.templates import DETAIL_HEADERS, format_date, format_number


def render_entries_csv(entries: Iterable[ServiceEntry]) -> str:
    """Detail table of ``entries`` as CSV text (header row first)."""
    output = StringIO()
    writer = csv.writer(output, delimiter=";")
    writer.writerow(DETAIL_HEADERS)

    for entry in entries:
        detail = entry.location_detail
        writer.writerow(
            [
                format_date(entry.date),
                entry.code,
                entry.description,
                entry.location,
                detail.km_start or "",
                detail.km_end or "",
                detail.station_start or "",
                detail.station_end or "",
                detail.lane or "",
                detail.side.value if detail.side else "",
                detail.stretch or "",
                detail.segment or "",
                format_number(entry.quantity),
                entry.unit,
                format_number(entry.unit_price),
                format_number(entry.total_value),
                entry.fiscal,
                entry.contractor,
            ]
        )

    return output.getvalue()
