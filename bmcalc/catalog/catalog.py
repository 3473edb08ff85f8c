"""In-memory price catalog with code and keyword lookup.

The catalog holds the currently loaded PriceItems and answers lookups without
any I/O. Persistence lives in ``bmcalc.db.price_queries``; callers build a
catalog from the rows they loaded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from rapidfuzz import fuzz

from bmcalc.catalog.normalize import (
    keyword_tokens,
    mentions_cubic_unit,
    mentions_square_unit,
    normalize_code,
    normalize_description,
)
from bmcalc.models import PriceItem, PriceSheetFile, SheetSummary

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_SCORE = 6
UNIT_BOOST = 5
CODE_HIT_SCORE = 100

_SQUARE_UNITS = {"m²", "m2"}
_CUBIC_UNITS = {"m³", "m3"}


def _same_contractor(a: str | None, b: str | None) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


class PriceCatalog:
    """Priced service items keyed by normalized code."""

    def __init__(
        self,
        items: Iterable[PriceItem] = (),
        min_description_score: int = MIN_DESCRIPTION_SCORE,
    ) -> None:
        self._items: list[PriceItem] = list(items)
        self.min_description_score = min_description_score

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PriceItem]:
        return iter(self._items)

    @property
    def items(self) -> list[PriceItem]:
        return list(self._items)

    def find_by_code(self, code: str | None, strict: bool = False) -> PriceItem | None:
        """Resolve a code, tolerating punctuation and case differences.

        Exact match on the normalized code wins. Otherwise the first item whose
        normalized code contains the query, or is contained by it, is returned.
        Substring matching can pick "BSO10" for "BSO1"; pass ``strict=True`` to
        disable it.
        """
        query = normalize_code(code)
        if not query:
            return None

        for item in self._items:
            if normalize_code(item.code) == query:
                return item

        if strict:
            return None

        for item in self._items:
            candidate = normalize_code(item.code)
            if candidate and (query in candidate or candidate in query):
                return item

        return None

    def find_by_description(self, description: str | None) -> PriceItem | None:
        """Best keyword match for a free-text description, or None below the floor."""
        tokens = keyword_tokens(description)
        if not tokens:
            return None

        wants_square = mentions_square_unit(description or "")
        wants_cubic = mentions_cubic_unit(description or "")

        best: PriceItem | None = None
        best_score = 0

        for item in self._items:
            haystack = normalize_description(item.description)
            score = sum(len(token) for token in tokens if token in haystack)

            unit = (item.unit or "").strip().lower()
            if wants_square and unit in _SQUARE_UNITS:
                score += UNIT_BOOST
            if wants_cubic and unit in _CUBIC_UNITS:
                score += UNIT_BOOST

            if score > best_score:
                best, best_score = item, score

        if best_score >= self.min_description_score:
            return best
        return None

    def search(self, query: str, limit: int = 50) -> list[PriceItem]:
        """Rank items for an operator picker.

        A code containing the query scores 100; each query term longer than one
        character found in the description adds twice its length.
        """
        needle = query.strip().lower()
        if not needle:
            return self._items[:limit]

        terms = [term for term in normalize_description(needle).split() if len(term) > 1]
        scored: list[tuple[int, int, PriceItem]] = []

        for position, item in enumerate(self._items):
            score = 0
            if needle in item.code.lower():
                score += CODE_HIT_SCORE
            description = normalize_description(item.description)
            for term in terms:
                if term in description:
                    score += len(term) * 2
            if score > 0:
                scored.append((score, position, item))

        scored.sort(key=lambda entry: (-entry[0], entry[1]))
        return [item for _, _, item in scored[:limit]]

    def suggest(
        self, description: str, limit: int = 5, min_score: float = 60
    ) -> list[tuple[PriceItem, float]]:
        """Fuzzy candidates (RapidFuzz token_sort_ratio) for manual correction."""
        query = normalize_description(description)
        if not query:
            return []

        ranked = []
        for item in self._items:
            score = fuzz.token_sort_ratio(query, normalize_description(item.description))
            if score >= min_score:
                ranked.append((item, score))

        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return ranked[:limit]

    def merge(self, items: Iterable[PriceItem]) -> tuple[int, int]:
        """Merge ``items`` by normalized code within each contractor scope.

        Existing items keep their id; description, unit, price, category,
        source and sheet link are overwritten (last write wins).

        Returns:
            Tuple of (added, updated)
        """
        added = updated = 0
        for incoming in items:
            key = normalize_code(incoming.code)
            for index, existing in enumerate(self._items):
                if normalize_code(existing.code) == key and _same_contractor(
                    existing.contractor, incoming.contractor
                ):
                    self._items[index] = existing.model_copy(
                        update={
                            "description": incoming.description,
                            "unit": incoming.unit,
                            "unit_price": incoming.unit_price,
                            "category": incoming.category,
                            "source": incoming.source,
                            "contract": incoming.contract or existing.contract,
                            "sheet_id": incoming.sheet_id,
                        }
                    )
                    updated += 1
                    break
            else:
                self._items.append(incoming)
                added += 1

        logger.debug(f"Catalog merge: {added} added, {updated} updated")
        return added, updated

    def contractors(self) -> list[str]:
        names = {item.contractor for item in self._items if item.contractor}
        return sorted(names)

    def for_contractor(self, name: str) -> PriceCatalog:
        """Sub-catalog of items whose contractor contains ``name`` (case-insensitive)."""
        needle = name.strip().lower()
        return PriceCatalog(
            (item for item in self._items if needle in (item.contractor or "").lower()),
            min_description_score=self.min_description_score,
        )


def sheets_summary(
    sheet_files: Iterable[PriceSheetFile], max_sheets: int = 20
) -> list[SheetSummary]:
    """Quota usage per contractor, sorted by contractor name."""
    groups: dict[str, SheetSummary] = {}
    for sheet in sheet_files:
        key = sheet.contractor.strip().lower()
        summary = groups.get(key)
        if summary is None:
            summary = SheetSummary(
                contractor=sheet.contractor, sheets=0, items=0, size=0, can_add_more=True
            )
            groups[key] = summary
        summary.sheets += 1
        summary.items += sheet.items_count
        summary.size += sheet.file_size

    for summary in groups.values():
        summary.can_add_more = summary.sheets < max_sheets

    return sorted(groups.values(), key=lambda summary: summary.contractor.lower())
