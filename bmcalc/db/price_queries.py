"""Price catalog persistence: price items and their sheet files.

Contractor comparisons are done in Python with ``casefold`` because SQLite's
``lower()`` ignores accented characters ("NÃO" vs "não").
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bmcalc.catalog import PriceCatalog, normalize_code
from bmcalc.db.models import PriceItemModel, PriceSheetFileModel
from bmcalc.exceptions import NotFoundError
from bmcalc.ingestion.storage import FileStorage
from bmcalc.models import PriceItem, PriceSheetFile

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {"code", "description", "unit", "unit_price", "category", "contractor", "contract"}


def _scope(contractor: str | None) -> str:
    return (contractor or "").strip().casefold()


def _row_to_price_item(row: PriceItemModel) -> PriceItem:
    return PriceItem(
        id=row.id,
        code=row.code,
        description=row.description,
        unit=row.unit,
        unit_price=row.unit_price,
        category=row.category,
        source=row.source,
        contractor=row.contractor,
        contract=row.contract,
        sheet_id=row.sheet_id,
        created_at=row.created_at,
    )


def _row_to_sheet(row: PriceSheetFileModel) -> PriceSheetFile:
    return PriceSheetFile(
        id=row.id,
        file_name=row.file_name,
        file_path=row.file_path,
        file_size=row.file_size,
        contractor=row.contractor,
        contract=row.contract,
        items_count=row.items_count,
        uploaded_at=row.uploaded_at,
    )


async def list_price_items(
    session: AsyncSession, contractor: str | None = None
) -> list[PriceItem]:
    """All catalog items, optionally restricted to a contractor (substring, case-insensitive)."""
    result = await session.execute(
        select(PriceItemModel).order_by(PriceItemModel.code, PriceItemModel.created_at)
    )
    rows = result.scalars().all()

    if contractor:
        needle = _scope(contractor)
        rows = [row for row in rows if needle in _scope(row.contractor)]

    return [_row_to_price_item(row) for row in rows]


async def load_catalog(
    session: AsyncSession,
    contractor: str | None = None,
    min_description_score: int = 6,
) -> PriceCatalog:
    items = await list_price_items(session, contractor)
    return PriceCatalog(items, min_description_score=min_description_score)


async def get_price_item(session: AsyncSession, item_id: UUID) -> PriceItem:
    row = await session.get(PriceItemModel, item_id)
    if row is None:
        raise NotFoundError(f"Item de preço não encontrado: {item_id}")
    return _row_to_price_item(row)


async def add_price_item(session: AsyncSession, item: PriceItem) -> PriceItem:
    """Insert a manually entered item (no sheet link)."""
    row = PriceItemModel(
        id=item.id,
        code=item.code.strip().upper(),
        code_key=normalize_code(item.code),
        description=item.description.strip(),
        unit=item.unit or "UN",
        unit_price=item.unit_price,
        category=item.category,
        source=item.source,
        contractor=item.contractor,
        contract=item.contract,
        sheet_id=item.sheet_id,
    )
    session.add(row)
    await session.flush()
    return _row_to_price_item(row)


async def update_price_item(session: AsyncSession, item_id: UUID, **changes) -> PriceItem:
    """Apply a manual edit.

    Raises:
        NotFoundError: If the item does not exist
        ValueError: On unknown fields or a negative price
    """
    unknown = set(changes) - _EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Campos não editáveis: {sorted(unknown)}")
    if "unit_price" in changes and changes["unit_price"] < 0:
        raise ValueError("unit_price must be non-negative")

    row = await session.get(PriceItemModel, item_id)
    if row is None:
        raise NotFoundError(f"Item de preço não encontrado: {item_id}")

    for field_name, value in changes.items():
        setattr(row, field_name, value)
    if "code" in changes:
        row.code = row.code.strip().upper()
        row.code_key = normalize_code(row.code)

    await session.flush()
    return _row_to_price_item(row)


async def delete_price_item(session: AsyncSession, item_id: UUID) -> None:
    row = await session.get(PriceItemModel, item_id)
    if row is None:
        raise NotFoundError(f"Item de preço não encontrado: {item_id}")
    await session.delete(row)
    await session.flush()


async def merge_price_items(
    session: AsyncSession,
    items: Iterable[PriceItem],
    sheet_id: UUID | None,
) -> tuple[int, int]:
    """Upsert ``items`` by normalized code within their contractor scope.

    Existing rows keep their id and are re-pointed to ``sheet_id``.

    Returns:
        Tuple of (added, updated)
    """
    result = await session.execute(select(PriceItemModel))
    existing: dict[tuple[str, str], PriceItemModel] = {
        (_scope(row.contractor), row.code_key): row for row in result.scalars().all()
    }

    added = updated = 0
    for item in items:
        key = (_scope(item.contractor), normalize_code(item.code))
        row = existing.get(key)

        if row is None:
            row = PriceItemModel(
                id=item.id,
                code=item.code,
                code_key=key[1],
                description=item.description,
                unit=item.unit,
                unit_price=item.unit_price,
                category=item.category,
                source=item.source,
                contractor=item.contractor,
                contract=item.contract,
                sheet_id=sheet_id,
            )
            session.add(row)
            existing[key] = row
            added += 1
        else:
            row.code = item.code
            row.description = item.description
            row.unit = item.unit
            row.unit_price = item.unit_price
            row.category = item.category
            row.source = item.source
            row.contract = item.contract or row.contract
            row.sheet_id = sheet_id
            updated += 1

    await session.flush()
    logger.info(f"Merged price items: {added} added, {updated} updated")
    return added, updated


async def clear_contractor_items(session: AsyncSession, contractor: str) -> int:
    """Delete every item of a contractor (exact name, case-insensitive)."""
    result = await session.execute(select(PriceItemModel))
    rows = [row for row in result.scalars().all() if _scope(row.contractor) == _scope(contractor)]
    for row in rows:
        await session.delete(row)
    await session.flush()
    return len(rows)


async def count_sheet_files(session: AsyncSession, contractor: str) -> int:
    result = await session.execute(select(PriceSheetFileModel.contractor))
    return sum(1 for name in result.scalars().all() if _scope(name) == _scope(contractor))


async def add_sheet_file(session: AsyncSession, sheet: PriceSheetFile) -> PriceSheetFile:
    row = PriceSheetFileModel(
        id=sheet.id,
        file_name=sheet.file_name,
        file_path=sheet.file_path,
        file_size=sheet.file_size,
        contractor=sheet.contractor,
        contract=sheet.contract,
        items_count=sheet.items_count,
    )
    session.add(row)
    await session.flush()
    return _row_to_sheet(row)


async def set_sheet_items_count(session: AsyncSession, sheet_id: UUID, count: int) -> None:
    row = await session.get(PriceSheetFileModel, sheet_id)
    if row is None:
        raise NotFoundError(f"Planilha não encontrada: {sheet_id}")
    row.items_count = count
    await session.flush()


async def list_sheet_files(
    session: AsyncSession, contractor: str | None = None
) -> list[PriceSheetFile]:
    result = await session.execute(
        select(PriceSheetFileModel).order_by(PriceSheetFileModel.uploaded_at.desc())
    )
    rows = result.scalars().all()
    if contractor:
        rows = [row for row in rows if _scope(row.contractor) == _scope(contractor)]
    return [_row_to_sheet(row) for row in rows]


async def delete_sheet_file(
    session: AsyncSession, sheet_id: UUID, storage: FileStorage
) -> int:
    """Delete a sheet record, the items still pointing at it and its bytes.

    Returns:
        Number of price items removed
    """
    row = await session.get(PriceSheetFileModel, sheet_id)
    if row is None:
        raise NotFoundError(f"Planilha não encontrada: {sheet_id}")

    result = await session.execute(
        delete(PriceItemModel).where(PriceItemModel.sheet_id == sheet_id)
    )
    removed = result.rowcount or 0

    file_path = row.file_path
    await session.delete(row)
    await session.flush()

    await storage.delete(file_path)
    logger.info(f"Deleted sheet {sheet_id} ({file_path}) with {removed} items")
    return removed


async def clear_catalog(session: AsyncSession, storage: FileStorage) -> int:
    """Delete every price item, sheet record and stored sheet file."""
    sheets = (await session.execute(select(PriceSheetFileModel))).scalars().all()
    paths = [sheet.file_path for sheet in sheets]

    result = await session.execute(delete(PriceItemModel))
    removed = result.rowcount or 0
    await session.execute(delete(PriceSheetFileModel))
    await session.flush()

    for path in paths:
        await storage.delete(path)

    return removed
