"""Contractor price sheet (BM) ingestion for BMCalc.

Reads every tab of a workbook or delimited text file, infers its columns,
detects the contractor and contract, and merges the priced items into the
catalog. The whole file is rejected when it is too large, yields no items, or
would push its contractor past the sheet quota.
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import aiofiles
from sqlalchemy.ext.asyncio import AsyncSession

from bmcalc.catalog.normalize import is_valid_service_code, normalize_code
from bmcalc.config import IngestionConfig
from bmcalc.db.price_queries import (
    add_sheet_file,
    count_sheet_files,
    merge_price_items,
    set_sheet_items_count,
)
from bmcalc.exceptions import (
    FileTooLargeError,
    NoItemsFoundError,
    SheetLimitExceededError,
    StorageWriteError,
)
from bmcalc.ingestion.columns import (
    ColumnInferenceSettings,
    ColumnMap,
    cell_text,
    infer_columns,
)
from bmcalc.ingestion.contractor import detect_contractor
from bmcalc.ingestion.price_parser import ZERO, is_plausible_price, looks_numeric, parse_price
from bmcalc.ingestion.storage import FileStorage, storage_key
from bmcalc.ingestion.workbook import Sheet, read_workbook
from bmcalc.models import IngestionResult, PriceItem, PriceSheetFile

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Sheet1"
DEFAULT_UNIT = "UN"
UNKNOWN_CONTRACTOR = "Não identificada"
MIN_DESCRIPTION_LENGTH = 3

SKIP_INVALID_CODE = "código inválido"
SKIP_SHORT_DESCRIPTION = "descrição ausente ou curta"
SKIP_DUPLICATE = "código duplicado no arquivo"

# Naive layout when no columns could be inferred
_FALLBACK_COLUMNS = ColumnMap(
    code_col=0,
    desc_col=1,
    unit_col=2,
    qty_col=-1,
    price_col=-1,
    total_col=-1,
    header_row_index=-1,
    strategy="fallback",
)

# Per-contractor guard around the quota check and the write that follows it.
# Locks are shared by every ingestor on the same event loop and are released
# together with the loop.
_loop_locks: weakref.WeakKeyDictionary[
    asyncio.AbstractEventLoop, dict[str, asyncio.Lock]
] = weakref.WeakKeyDictionary()


def contractor_lock(contractor: str) -> asyncio.Lock:
    """Lock for ``contractor`` (case-insensitive) on the running event loop."""
    locks = _loop_locks.setdefault(asyncio.get_running_loop(), {})
    return locks.setdefault(contractor.strip().casefold(), asyncio.Lock())


@dataclass
class ExtractedItems:
    """Items read from a file before persistence."""

    items: list[PriceItem] = field(default_factory=list)
    contractor: str = ""
    contract: str = ""
    skipped: Counter = field(default_factory=Counter)
    notes: list[str] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        messages = list(self.notes)
        for reason, count in sorted(self.skipped.items()):
            messages.append(f"{count} linha(s) ignorada(s): {reason}")
        return messages


def _cell(row: list[object], col: int) -> object:
    if 0 <= col < len(row):
        return row[col]
    return None


def _price_from(
    row: list[object], columns: ColumnMap, settings: ColumnInferenceSettings
) -> Decimal:
    """Primary price column, then other candidates, then right-most numeric cell.

    A numeric zero in a price column is a real price; only blank or
    non-numeric price cells fall through to the scan, which never reads the
    identified quantity and total columns.
    """
    candidates = [columns.price_col] + [
        col for col in columns.price_col_candidates if col != columns.price_col
    ]
    for col in candidates:
        raw = _cell(row, col)
        if raw is None or not looks_numeric(raw):
            continue
        value = parse_price(raw)
        if value == ZERO or is_plausible_price(
            value, settings.numeric_min, settings.numeric_max
        ):
            return value

    skip = {columns.code_col, columns.desc_col, columns.unit_col, *columns.measure_cols}
    for col in range(len(row) - 1, -1, -1):
        if col in skip or not looks_numeric(row[col]):
            continue
        value = parse_price(row[col])
        if is_plausible_price(value, settings.numeric_min, settings.numeric_max):
            return value

    return ZERO


def extract_items(
    sheets: list[Sheet], settings: ColumnInferenceSettings | None = None
) -> ExtractedItems:
    """Turn raw sheet grids into PriceItems (no I/O).

    Contractor and contract come from the first tab where they are detected.
    Rows with a malformed code, a missing description or a code already seen
    in this file are skipped and counted.
    """
    settings = settings or ColumnInferenceSettings()
    result = ExtractedItems()
    seen: set[str] = set()

    for sheet in sheets:
        rows = sheet.rows
        if not rows:
            continue

        if not result.contractor or not result.contract:
            info = detect_contractor(rows)
            result.contractor = result.contractor or info.contractor
            result.contract = result.contract or info.contract

        columns = infer_columns(rows, settings)
        if columns is None:
            columns = _FALLBACK_COLUMNS
            result.notes.append(
                f"Aba '{sheet.name}': colunas não identificadas, usando layout padrão"
            )

        category = sheet.name if sheet.name != DEFAULT_SHEET_NAME else None
        source = "BM" if columns.strategy in ("header", "template") else "planilha"
        added_here = 0

        for row in rows[columns.header_row_index + 1 :]:
            if not row or not any(cell_text(cell) for cell in row):
                continue

            code = cell_text(_cell(row, columns.code_col)).upper()
            if not is_valid_service_code(code):
                result.skipped[SKIP_INVALID_CODE] += 1
                continue

            description = cell_text(_cell(row, columns.desc_col))
            if len(description) < MIN_DESCRIPTION_LENGTH:
                result.skipped[SKIP_SHORT_DESCRIPTION] += 1
                continue

            key = normalize_code(code)
            if key in seen:
                result.skipped[SKIP_DUPLICATE] += 1
                continue
            seen.add(key)

            result.items.append(
                PriceItem(
                    code=code,
                    description=description,
                    unit=cell_text(_cell(row, columns.unit_col)) or DEFAULT_UNIT,
                    unit_price=_price_from(row, columns, settings),
                    category=category,
                    source=source,
                )
            )
            added_here += 1

        logger.debug(
            f"Sheet '{sheet.name}': {added_here} items via {columns.strategy} layout"
        )

    for item in result.items:
        item.contractor = result.contractor or None
        item.contract = result.contract or None

    return result


class PriceSheetIngestor:
    """Persist price sheets into the catalog.

    Usage:
        async with get_session() as session:
            ingestor = PriceSheetIngestor(session, LocalFileStorage(root))
            result = await ingestor.ingest(Path("bm.xlsx"))
    """

    def __init__(
        self,
        session: AsyncSession,
        storage: FileStorage,
        config: IngestionConfig | None = None,
    ) -> None:
        self.session = session
        self.storage = storage
        self.config = config or IngestionConfig()
        self.settings = ColumnInferenceSettings.from_config(self.config)

    async def _free_key(self, contractor: str, file_name: str) -> str:
        """Storage key not yet taken; the millisecond stamp is bumped on collision."""
        stamp = int(time.time() * 1000)
        key = storage_key(contractor, file_name, stamp)
        while await self.storage.exists(key):
            stamp += 1
            key = storage_key(contractor, file_name, stamp)
        return key

    async def ingest(
        self, source: Path | bytes, file_name: str | None = None
    ) -> IngestionResult:
        """Ingest a workbook from a path or raw bytes.

        Raises:
            FileTooLargeError: File exceeds the configured size
            UnsupportedFormatError: Neither Excel nor delimited text
            NoItemsFoundError: No valid item in any tab
            SheetLimitExceededError: Contractor already has the maximum sheets
            StorageWriteError: Persistence failed; uploaded bytes were removed
        """
        content, file_name = await self._read_source(source, file_name)
        extracted = extract_items(read_workbook(content, file_name), self.settings)
        return await self._persist(extracted, content, file_name)

    async def ingest_extracted(
        self, extracted: ExtractedItems, content: bytes, file_name: str
    ) -> IngestionResult:
        """Persist items read by other means, such as the gateway reading a PDF.

        The source bytes are stored as the sheet file, so quota, merge and
        rollback behave as for a spreadsheet.
        """
        if len(content) > self.config.max_file_size:
            raise FileTooLargeError(len(content), self.config.max_file_size)
        return await self._persist(extracted, content, file_name)

    async def _read_source(
        self, source: Path | bytes, file_name: str | None
    ) -> tuple[bytes, str]:
        if isinstance(source, Path):
            file_name = file_name or source.name
            if source.stat().st_size > self.config.max_file_size:
                raise FileTooLargeError(source.stat().st_size, self.config.max_file_size)
            async with aiofiles.open(source, "rb") as in_file:
                content = await in_file.read()
        else:
            content = source
            if not file_name:
                raise ValueError("file_name is required when ingesting raw bytes")

        if len(content) > self.config.max_file_size:
            raise FileTooLargeError(len(content), self.config.max_file_size)
        return content, file_name

    async def _persist(
        self, extracted: ExtractedItems, content: bytes, file_name: str
    ) -> IngestionResult:
        if not extracted.items:
            raise NoItemsFoundError()

        sheet_contractor = extracted.contractor or UNKNOWN_CONTRACTOR

        async with contractor_lock(sheet_contractor):
            existing = await count_sheet_files(self.session, sheet_contractor)
            if existing >= self.config.max_sheets_per_contractor:
                raise SheetLimitExceededError(
                    sheet_contractor, self.config.max_sheets_per_contractor
                )

            key = await self._free_key(extracted.contractor, file_name)
            await self.storage.save(key, content)

            try:
                sheet = await add_sheet_file(
                    self.session,
                    PriceSheetFile(
                        id=uuid4(),
                        file_name=file_name,
                        file_path=key,
                        file_size=len(content),
                        contractor=sheet_contractor,
                        contract=extracted.contract or None,
                    ),
                )
                added, updated = await merge_price_items(
                    self.session, extracted.items, sheet.id
                )
                await set_sheet_items_count(self.session, sheet.id, added + updated)
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                await self.storage.delete(key)
                logger.error(f"Rolled back ingestion of {file_name}: {e}")
                raise StorageWriteError(f"Falha ao salvar planilha '{file_name}': {e}") from e

        logger.info(
            f"Ingested {file_name}: {added} added, {updated} updated "
            f"for '{sheet_contractor}'"
        )
        return IngestionResult(
            added=added,
            updated=updated,
            errors=extracted.errors,
            contractor=extracted.contractor,
            contract=extracted.contract,
            sheet_id=sheet.id,
        )
