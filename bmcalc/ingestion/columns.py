"""Column inference for raw price-sheet grids.

Real-world price sheets (BM, SICRO/SINAPI extracts, contractor proposals) vary
in header phrasing, language and column order. Detection degrades through a
chain of detectors with decreasing confidence:

1. Header patterns: curated regexes for code/description/unit/quantity/price/
   total headers, with positional inference of missing columns.
2. Known template: the fixed BM layout announced by a "DESCRIÇÃO SERVIÇO"
   header.
3. Numeric shape: a row with enough text followed by a row with at least two
   price-like cells.

Each detector is a pure function ``(grid, settings) -> ColumnMap | None``;
the first non-None result wins.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from bmcalc.ingestion.price_parser import is_plausible_price, looks_numeric, parse_price

if TYPE_CHECKING:
    from bmcalc.config import IngestionConfig

logger = logging.getLogger(__name__)

Grid = Sequence[Sequence[object]]


@dataclass(frozen=True)
class ColumnMap:
    """Zero-based column indices of a price sheet."""

    code_col: int
    desc_col: int
    unit_col: int
    qty_col: int
    price_col: int
    total_col: int
    header_row_index: int
    price_col_candidates: tuple[int, ...] = ()
    strategy: str = ""
    # Quantity and total columns actually identified; never read as prices
    measure_cols: tuple[int, ...] = ()


@dataclass(frozen=True)
class ColumnInferenceSettings:
    """Tunable thresholds for column inference.

    The numeric-shape thresholds are empirical; tune them against real sheets.
    """

    header_scan_rows: int = 25
    numeric_min: Decimal = Decimal("0")
    numeric_max: Decimal = Decimal("1000000")
    header_min_text_length: int = 5

    @classmethod
    def from_config(cls, config: IngestionConfig) -> ColumnInferenceSettings:
        return cls(
            header_scan_rows=config.header_scan_rows,
            numeric_min=config.numeric_min,
            numeric_max=config.numeric_max,
            header_min_text_length=config.header_min_text_length,
        )


Detector = Callable[[Grid, ColumnInferenceSettings], "ColumnMap | None"]


# Header cells are compared after accent stripping, upper-casing and removal of
# parenthesised suffixes such as "(R$)".
_PRICE_PATTERN = re.compile(
    r"^(PU|P\.?\s*U\.?|P\.?\s*UNIT(ARIO)?\.?|PRECO\s*UNIT.*|VALOR\s*UNIT.*|"
    r"CUSTO\s*UNIT.*|PRECO|PRECO\s*S/?\s*BDI|PRECO\s*C/?\s*BDI|TARIFA.*|TAXA|"
    r"RATE|UNIT\s*PRICE|UNIT\s*RATE|UNIT\s*COST)$"
)
_TOTAL_PATTERN = re.compile(
    r"^(VALOR|TOTAL|VALOR\s*TOTAL.*|PRECO\s*TOTAL.*|CUSTO\s*TOTAL.*|SUBTOTAL|"
    r"TOTAL\s*GERAL|AMOUNT)$"
)
_CODE_PATTERN = re.compile(
    r"^(CODIGO|COD\.?|CODIGO\s*(DO\s*)?SERVICO|COD\.?\s*(DO\s*)?SERVICO|ITEM|"
    r"ID|REF\.?|REFERENCIA|CODE|SERVICE\s*CODE)$"
)
_UNIT_PATTERN = re.compile(r"^(UN\.?|UND\.?|UNID\.?|UNIDADE|UNIT|U\.?\s*M\.?)$")
_QTY_PATTERN = re.compile(
    r"^(QTDE?\.?|QUANT\.?|QUANTIDADE|QT\.?|QTY|QUANTITY)$"
)
_DESC_FULL_PATTERN = re.compile(r"^(DESC\.?|SERVICOS?|ATIVIDADES?)$")
_DESC_SEARCH_PATTERN = re.compile(
    r"(DESCRICAO|DESCRIMINACAO|DISCRIMINACAO|ESPECIFICACAO|DESCRIPTION)"
)

_KNOWN_TEMPLATE_MARKER = re.compile(r"DESCRICAO\s+(DO\s+)?SERVICO")

# Fixed layout of the BM template: Código | Linha | ID | DESCRIÇÃO SERVIÇO | UN | QTDE | PU | VALOR
_BM_TEMPLATE_LAYOUT = {
    "code_col": 0,
    "desc_col": 3,
    "unit_col": 4,
    "qty_col": 5,
    "price_col": 6,
    "total_col": 7,
}


def cell_text(cell: object) -> str:
    """Render a raw cell as trimmed text (integral floats lose their '.0')."""
    if cell is None:
        return ""
    if isinstance(cell, float):
        if cell != cell:  # NaN
            return ""
        if cell.is_integer():
            return str(int(cell))
    return str(cell).strip()


def normalize_header(cell: object) -> str:
    text = unicodedata.normalize("NFKD", cell_text(cell))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"\(.*?\)", "", text.upper())
    return re.sub(r"\s+", " ", text).strip()


def _classify_header(header: str) -> str | None:
    if not header:
        return None
    if _PRICE_PATTERN.match(header):
        return "price"
    if _TOTAL_PATTERN.match(header):
        return "total"
    if _CODE_PATTERN.match(header):
        return "code"
    if _UNIT_PATTERN.match(header):
        return "unit"
    if _QTY_PATTERN.match(header):
        return "qty"
    if _DESC_FULL_PATTERN.match(header) or _DESC_SEARCH_PATTERN.search(header):
        return "desc"
    return None


@dataclass
class _HeaderHits:
    code: list[int] = field(default_factory=list)
    desc: list[int] = field(default_factory=list)
    unit: list[int] = field(default_factory=list)
    qty: list[int] = field(default_factory=list)
    price: list[int] = field(default_factory=list)
    total: list[int] = field(default_factory=list)


def _scan_rows(grid: Grid, settings: ColumnInferenceSettings) -> range:
    return range(min(settings.header_scan_rows, len(grid)))


def detect_by_header_patterns(
    grid: Grid, settings: ColumnInferenceSettings
) -> ColumnMap | None:
    """Find a header row whose cells name code/description and a price."""
    for row_index in _scan_rows(grid, settings):
        row = grid[row_index] or []
        headers = [normalize_header(cell) for cell in row]

        hits = _HeaderHits()
        for col, header in enumerate(headers):
            kind = _classify_header(header)
            if kind is not None:
                getattr(hits, kind).append(col)

        if not (hits.code or hits.desc) or not hits.price:
            continue

        desc_col = hits.desc[0] if hits.desc else -1
        code_col = _pick_code_column(hits.code, headers, desc_col)

        # Code and description are always adjacent in source documents
        if code_col < 0:
            code_col = max(desc_col - 1, 0)
        if desc_col < 0:
            desc_col = code_col + 1

        unit_col = hits.unit[0] if hits.unit else desc_col + 1
        qty_col = hits.qty[0] if hits.qty else desc_col + 2
        price_col = hits.price[0]
        total_col = _pick_total_column(hits.total, price_col)
        measured = hits.qty[:1] + [col for col in hits.total if col == total_col]

        return ColumnMap(
            code_col=code_col,
            desc_col=desc_col,
            unit_col=unit_col,
            qty_col=qty_col,
            price_col=price_col,
            total_col=total_col,
            header_row_index=row_index,
            price_col_candidates=tuple(hits.price),
            strategy="header",
            measure_cols=tuple(measured),
        )

    return None


def _pick_code_column(candidates: list[int], headers: list[str], desc_col: int) -> int:
    """Prefer an explicit CÓDIGO header, then the column left of the description."""
    if not candidates:
        return -1
    for col in candidates:
        if headers[col].startswith("COD"):
            return col
    if desc_col - 1 in candidates:
        return desc_col - 1
    return candidates[0]


def _pick_total_column(candidates: list[int], price_col: int) -> int:
    after_price = [col for col in candidates if col > price_col]
    if after_price:
        return after_price[0]
    if candidates:
        return candidates[0]
    return price_col + 1


def detect_known_template(
    grid: Grid, settings: ColumnInferenceSettings
) -> ColumnMap | None:
    """Recognise the BM template by its "DESCRIÇÃO SERVIÇO" header."""
    for row_index in _scan_rows(grid, settings):
        row = grid[row_index] or []
        if any(_KNOWN_TEMPLATE_MARKER.search(normalize_header(cell)) for cell in row):
            return ColumnMap(
                **_BM_TEMPLATE_LAYOUT,
                header_row_index=row_index,
                price_col_candidates=(_BM_TEMPLATE_LAYOUT["price_col"],),
                strategy="template",
                measure_cols=(
                    _BM_TEMPLATE_LAYOUT["qty_col"],
                    _BM_TEMPLATE_LAYOUT["total_col"],
                ),
            )
    return None


def numeric_columns(row: Sequence[object], settings: ColumnInferenceSettings) -> list[int]:
    """Indices of cells holding a price-like value inside the configured range."""
    columns = []
    for col, cell in enumerate(row):
        if not looks_numeric(cell):
            continue
        if is_plausible_price(parse_price(cell), settings.numeric_min, settings.numeric_max):
            columns.append(col)
    return columns


def detect_by_numeric_shape(
    grid: Grid, settings: ColumnInferenceSettings
) -> ColumnMap | None:
    """Infer columns positionally from the numeric cells of the first data row."""
    for row_index in _scan_rows(grid, settings):
        if row_index + 1 >= len(grid):
            break

        header = grid[row_index] or []
        data_row = grid[row_index + 1] or []

        numeric = numeric_columns(data_row, settings)
        if len(numeric) < 2:
            continue
        if not any(
            len(cell_text(cell)) > settings.header_min_text_length for cell in header
        ):
            continue

        total_col = numeric[-1]
        price_col = numeric[-2]
        qty_col = numeric[-3] if len(numeric) >= 3 else price_col

        text_cols = [
            col
            for col, cell in enumerate(data_row)
            if col not in numeric and cell_text(cell)
        ]
        code_col = text_cols[0] if text_cols else 0
        desc_col = code_col + 1
        unit_col = desc_col + 1 if desc_col + 1 < price_col else max(price_col - 1, 0)

        return ColumnMap(
            code_col=code_col,
            desc_col=desc_col,
            unit_col=unit_col,
            qty_col=qty_col,
            price_col=price_col,
            total_col=total_col,
            header_row_index=row_index,
            price_col_candidates=(price_col,),
            strategy="numeric",
            measure_cols=tuple(col for col in (qty_col, total_col) if col != price_col),
        )

    return None


DETECTORS: tuple[Detector, ...] = (
    detect_by_header_patterns,
    detect_known_template,
    detect_by_numeric_shape,
)


def infer_columns(
    grid: Grid, settings: ColumnInferenceSettings | None = None
) -> ColumnMap | None:
    """Run the detector chain over ``grid``.

    Returns:
        ColumnMap from the first detector that succeeds, or None when the sheet
        could not be understood. Callers must handle None explicitly.
    """
    settings = settings or ColumnInferenceSettings()
    for detector in DETECTORS:
        columns = detector(grid, settings)
        if columns is not None:
            logger.debug(
                "Columns inferred by %s at row %d: %s",
                columns.strategy,
                columns.header_row_index,
                columns,
            )
            return columns

    logger.debug("No column layout inferred for grid with %d rows", len(grid))
    return None
