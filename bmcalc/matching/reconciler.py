"""Service reconciliation: tie extracted service occurrences to catalog items.

Resolution order:
1. Raw code supplied with the occurrence, matched exactly (normalized).
2. Learned match history for the occurrence description.
3. Unmatched; the operator confirms or corrects later.

The only learning is ``confirm``, which records the operator's choice.
"""

from __future__ import annotations

import logging

from bmcalc.catalog import PriceCatalog
from bmcalc.matching.history import MatchHistory, lookup, remember
from bmcalc.models import (
    MatchMethod,
    PriceItem,
    ReportContext,
    ServiceEntry,
    ServiceEntryDraft,
    ServiceOccurrence,
)

logger = logging.getLogger(__name__)


class ServiceReconciler:
    """Prices service occurrences against a catalog."""

    def __init__(self, catalog: PriceCatalog, history: MatchHistory) -> None:
        self.catalog = catalog
        self.history = history

    def reconcile(self, occurrence: ServiceOccurrence) -> ServiceEntryDraft:
        if occurrence.raw_code:
            item = self.catalog.find_by_code(occurrence.raw_code, strict=True)
            if item is not None:
                return self._draft(occurrence, item, MatchMethod.RAW_CODE)

        learned_code = lookup(self.history, occurrence.description)
        if learned_code:
            item = self.catalog.find_by_code(learned_code)
            if item is not None:
                return self._draft(occurrence, item, MatchMethod.MATCH_HISTORY)
            logger.warning(
                f"Learned code {learned_code!r} for {occurrence.description!r} "
                "is not in the catalog"
            )

        return ServiceEntryDraft(
            occurrence=occurrence,
            matched=False,
            method=MatchMethod.UNMATCHED,
            description=occurrence.description,
            unit=occurrence.unit,
        )

    def reconcile_all(self, occurrences: list[ServiceOccurrence]) -> list[ServiceEntryDraft]:
        drafts = [self.reconcile(occurrence) for occurrence in occurrences]
        matched = sum(1 for draft in drafts if draft.matched)
        logger.info(f"Reconciled {len(drafts)} occurrences ({matched} matched)")
        return drafts

    def confirm(self, occurrence: ServiceOccurrence, item: PriceItem) -> ServiceEntryDraft:
        """Record the operator's choice and return the resolved draft."""
        remember(self.history, occurrence.description, item.code)
        logger.info(f"Learned {occurrence.description!r} -> {item.code}")
        return self._draft(occurrence, item, MatchMethod.MANUAL)

    @staticmethod
    def _draft(
        occurrence: ServiceOccurrence, item: PriceItem, method: MatchMethod
    ) -> ServiceEntryDraft:
        draft = ServiceEntryDraft(
            occurrence=occurrence,
            matched=True,
            method=method,
            price_item_id=item.id,
            code=item.code,
            description=item.description,
            unit=item.unit or occurrence.unit,
            unit_price=item.unit_price,
        )
        if draft.suspicious_quantity:
            logger.warning(
                f"Quantity {occurrence.quantity} for {item.code} is not positive"
            )
        return draft

    @staticmethod
    def to_entry(draft: ServiceEntryDraft, context: ReportContext) -> ServiceEntry:
        """Freeze a draft into a ServiceEntry; ``total_value`` is computed here once."""
        occurrence = draft.occurrence
        return ServiceEntry(
            activity_id=context.activity_id,
            price_item_id=draft.price_item_id,
            code=draft.code,
            description=draft.description or occurrence.description,
            quantity=occurrence.quantity,
            unit=draft.unit or occurrence.unit,
            unit_price=draft.unit_price,
            total_value=draft.total_value,
            date=context.date,
            contractor=context.contractor,
            fiscal=context.fiscal,
            job_site=context.job_site,
            location=occurrence.location,
            location_detail=occurrence.location_detail,
            notes=occurrence.notes,
            matched=draft.matched,
        )
