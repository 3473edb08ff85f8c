"""Excel export of measurement bulletins.

Generates a workbook with:
- "Medição": bulletin header and the per-code rollup with its total
- "Detalhado": one row per service entry, including structured location
"""

from __future__ import annotations

from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from bmcalc.reporting.templates import (
    DETAIL_HEADERS,
    SUMMARY_HEADERS,
    Bulletin,
    format_date,
)

MONEY_FORMAT = '"R$" #,##0.00'
QUANTITY_FORMAT = "#,##0.00"

_HEADER_FILL = PatternFill(start_color="2980B9", end_color="2980B9", fill_type="solid")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_THIN = Side(style="thin", color="BFBFBF")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)

_SUMMARY_WIDTHS = [6, 12, 50, 10, 12, 15, 15]
_DETAIL_WIDTHS = [12, 12, 40, 25, 10, 10, 12, 12, 8, 8, 15, 15, 10, 8, 12, 12, 20, 25]


def render_bulletin_xlsx(bulletin: Bulletin) -> bytes:
    """Render ``bulletin`` to xlsx bytes."""
    wb = Workbook()

    # Remove default sheet
    if "Sheet" in wb.sheetnames:
        wb.remove(wb["Sheet"])

    _create_summary_sheet(wb, bulletin)
    _create_detail_sheet(wb, bulletin)

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def _style_header_row(ws, row: int, columns: int) -> None:
    for col in range(1, columns + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = _BORDER


def _set_widths(ws, widths: list[int]) -> None:
    for index, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(index)].width = width


def _create_summary_sheet(wb: Workbook, bulletin: Bulletin) -> None:
    ws = wb.create_sheet("Medição", 0)
    config = bulletin.config
    period = bulletin.period

    ws["A1"] = config.heading
    ws["A1"].font = Font(bold=True, size=14)
    ws.merge_cells("A1:G1")

    header_fields = [
        ("CONTRATANTE:", config.client or "-"),
        ("CONTRATADA:", bulletin.contractor or "-"),
        ("CONTRATO:", config.contract or "-"),
        ("MEDIÇÃO Nº:", str(config.number)),
        ("PERÍODO:", f"{format_date(period.start)} a {format_date(period.end)}"),
    ]
    row = 3
    for label, value in header_fields:
        ws.cell(row=row, column=1, value=label).font = Font(bold=True)
        ws.cell(row=row, column=2, value=value)
        row += 1

    row += 1
    for col, header in enumerate(SUMMARY_HEADERS, 1):
        ws.cell(row=row, column=col, value=header)
    _style_header_row(ws, row, len(SUMMARY_HEADERS))

    for index, rollup in enumerate(bulletin.rollups, 1):
        row += 1
        values = [
            index,
            rollup.code,
            rollup.description,
            rollup.unit,
            float(rollup.quantity),
            float(rollup.unit_price),
            float(rollup.total_value),
        ]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col, value=value)
            cell.border = _BORDER
        ws.cell(row=row, column=5).number_format = QUANTITY_FORMAT
        ws.cell(row=row, column=6).number_format = MONEY_FORMAT
        ws.cell(row=row, column=7).number_format = MONEY_FORMAT

    row += 2
    ws.cell(row=row, column=6, value="TOTAL:").font = Font(bold=True)
    total_cell = ws.cell(row=row, column=7, value=float(bulletin.total_value))
    total_cell.font = Font(bold=True)
    total_cell.number_format = MONEY_FORMAT

    _set_widths(ws, _SUMMARY_WIDTHS)


def _create_detail_sheet(wb: Workbook, bulletin: Bulletin) -> None:
    ws = wb.create_sheet("Detalhado")

    for col, header in enumerate(DETAIL_HEADERS, 1):
        ws.cell(row=1, column=col, value=header)
    _style_header_row(ws, 1, len(DETAIL_HEADERS))

    for row, entry in enumerate(bulletin.entries, 2):
        detail = entry.location_detail
        values = [
            format_date(entry.date),
            entry.code,
            entry.description,
            entry.location,
            detail.km_start,
            detail.km_end,
            detail.station_start,
            detail.station_end,
            detail.lane,
            detail.side.value if detail.side else None,
            detail.stretch,
            detail.segment,
            float(entry.quantity),
            entry.unit,
            float(entry.unit_price),
            float(entry.total_value),
            entry.fiscal,
            entry.contractor,
        ]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value)
        ws.cell(row=row, column=15).number_format = MONEY_FORMAT
        ws.cell(row=row, column=16).number_format = MONEY_FORMAT

    ws.freeze_panes = "A2"
    _set_widths(ws, _DETAIL_WIDTHS)
