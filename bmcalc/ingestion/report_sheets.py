"""Bulk import of daily reports (RDA/RDO) from a spreadsheet.

The first sheet is read with a header row; each field is located by a list of
alternative column names (``efetivo`` / ``mão de obra`` / ``equipe`` ...).
Exact header matches win over partial ones. Dates are accepted as real
dates, Excel serial numbers, ``DD/MM/YYYY`` or ``YYYY-MM-DD``.
"""

from __future__ import annotations

import logging
import numbers
import re
import unicodedata
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime

import pandas as pd

from bmcalc.ingestion.columns import cell_text
from bmcalc.ingestion.workbook import read_workbook
from bmcalc.models import DailyReport, weekday_name

logger = logging.getLogger(__name__)

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("data", "date", "dia"),
    "contractor": ("contratada", "empreiteira", "empresa", "contractor"),
    "job_site": ("obra", "local", "projeto", "work", "trecho"),
    "work_front": ("frente", "local", "localizacao", "pista", "faixa"),
    "fiscal": ("fiscal", "responsavel", "engenheiro", "supervisor"),
    "activities": ("atividades", "atividade", "descricao", "activities", "servico"),
    "notes": ("observacoes", "obs", "observacao", "notas", "medicao"),
    "crew_total": ("efetivo", "mao de obra", "funcionarios", "equipe"),
    "equipment_total": ("equipamentos", "equipamento", "maquinas"),
}

SKIP_INVALID_DATE = "data ausente ou inválida"
SKIP_EMPTY = "sem contratada, obra ou atividades"

# Day zero of the Excel 1900 date system (includes the 1900 leap-year bug)
_EXCEL_EPOCH = pd.Timestamp("1899-12-30")

_BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_LEADING_INT = re.compile(r"^\s*(\d+)")


@dataclass
class ReportSheet:
    """Reports read from a spreadsheet, before persistence."""

    reports: list[DailyReport] = field(default_factory=list)
    columns: dict[str, int] = field(default_factory=dict)
    skipped: Counter = field(default_factory=Counter)

    @property
    def errors(self) -> list[str]:
        return [
            f"{count} linha(s) ignorada(s): {reason}"
            for reason, count in sorted(self.skipped.items())
        ]


def normalize_column_name(name: object) -> str:
    text = unicodedata.normalize("NFKD", cell_text(name).lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]", "", text)


def locate_columns(header: list[object]) -> dict[str, int]:
    """Map report fields to header indices; unmatched fields are left out.

    Exact header matches are assigned first. Partial matches only consider
    columns no exact match has claimed, so "Mão de obra" never becomes the
    job site.
    """
    names = [normalize_column_name(cell) for cell in header]
    alias_keys = {
        field_name: [normalize_column_name(alias) for alias in aliases]
        for field_name, aliases in COLUMN_ALIASES.items()
    }

    located: dict[str, int] = {}
    for field_name, keys in alias_keys.items():
        exact = next((names.index(key) for key in keys if key in names), None)
        if exact is not None:
            located[field_name] = exact

    claimed = set(located.values())
    for field_name, keys in alias_keys.items():
        if field_name in located:
            continue
        for key in keys:
            partial = next(
                (
                    col
                    for col, name in enumerate(names)
                    if name and key in name and col not in claimed
                ),
                None,
            )
            if partial is not None:
                located[field_name] = partial
                claimed.add(partial)
                break
    return located


def parse_report_date(value: object) -> str | None:
    """``YYYY-MM-DD`` for a date-like cell, or None."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if value <= 0 or value != value:
            return None
        return (_EXCEL_EPOCH + pd.to_timedelta(int(value), unit="D")).strftime("%Y-%m-%d")

    text = cell_text(value)
    match = _BR_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            return None
    if _ISO_DATE.match(text):
        try:
            return date.fromisoformat(text[:10]).isoformat()
        except ValueError:
            return None
    return None


def parse_count(value: object) -> int:
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return int(value) if value == value and value > 0 else 0
    match = _LEADING_INT.match(cell_text(value))
    return int(match.group(1)) if match else 0


def read_report_sheet(content: bytes, file_name: str) -> ReportSheet:
    """Build DailyReports from the first sheet of an Excel or CSV file.

    Raises:
        UnsupportedFormatError: For anything other than Excel or CSV.
    """
    sheets = read_workbook(content, file_name)
    result = ReportSheet()
    rows = sheets[0].rows if sheets else []

    header_index = next(
        (i for i, row in enumerate(rows) if any(cell_text(cell) for cell in row)), None
    )
    if header_index is None:
        return result

    result.columns = locate_columns(rows[header_index])

    def value(row: list[object], field_name: str) -> object:
        col = result.columns.get(field_name)
        if col is None or col >= len(row):
            return None
        return row[col]

    def text(row: list[object], field_name: str) -> str:
        return cell_text(value(row, field_name))

    for row in rows[header_index + 1 :]:
        if not any(cell_text(cell) for cell in row):
            continue

        if not (text(row, "contractor") or text(row, "activities") or text(row, "job_site")):
            result.skipped[SKIP_EMPTY] += 1
            continue

        day = parse_report_date(value(row, "date"))
        if day is None:
            result.skipped[SKIP_INVALID_DATE] += 1
            continue

        result.reports.append(
            DailyReport(
                date=day,
                weekday=weekday_name(day),
                fiscal=text(row, "fiscal"),
                contractor=text(row, "contractor"),
                job_site=text(row, "job_site"),
                work_front=text(row, "work_front"),
                crew_total=parse_count(value(row, "crew_total")),
                equipment_total=parse_count(value(row, "equipment_total")),
                activities=text(row, "activities"),
                notes=text(row, "notes"),
            )
        )

    logger.info(
        f"Read {len(result.reports)} daily reports from {file_name} "
        f"({sum(result.skipped.values())} skipped)"
    )
    return result
