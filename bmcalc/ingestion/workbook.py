"""Read spreadsheet bytes into raw cell grids.

Every sheet becomes a list of rows of native Python values (str, int, float
or None) with no header interpretation; column inference happens later.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from bmcalc.exceptions import UnsupportedFormatError

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
CSV_SUFFIXES = {".csv", ".txt"}


@dataclass
class Sheet:
    name: str
    rows: list[list[object]]


def read_workbook(content: bytes, file_name: str) -> list[Sheet]:
    """Parse ``content`` according to the suffix of ``file_name``.

    Raises:
        UnsupportedFormatError: For anything other than Excel or CSV.
    """
    suffix = Path(file_name).suffix.lower()

    if suffix in EXCEL_SUFFIXES:
        frames = pd.read_excel(io.BytesIO(content), sheet_name=None, header=None, dtype=object)
        sheets = [Sheet(name=str(name), rows=_frame_rows(df)) for name, df in frames.items()]
    elif suffix in CSV_SUFFIXES:
        sheets = [Sheet(name="Sheet1", rows=_read_csv(content))]
    else:
        raise UnsupportedFormatError(suffix)

    logger.info(f"Read {len(sheets)} sheet(s) from {file_name}")
    return sheets


def _read_csv(content: bytes) -> list[list[object]]:
    text = _decode(content)
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=";,\t|")
        delimiter = dialect.delimiter
    except csv.Error:
        delimiter = ";" if text.count(";") > text.count(",") else ","

    # Rows stay ragged and textual; "1.234,56" reaches the price parser intact
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    return [[cell.strip() or None for cell in row] for row in reader]


def _decode(content: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1")


def _frame_rows(df: pd.DataFrame) -> list[list[object]]:
    rows = []
    for values in df.itertuples(index=False, name=None):
        rows.append([None if _is_missing(value) else value for value in values])
    return rows


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
