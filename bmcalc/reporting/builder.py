"""Assemble a measurement bulletin from recorded service entries."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal

from bmcalc.exceptions import NothingToExportError
from bmcalc.measurement import entries_for_export, group_by_code, summarize
from bmcalc.models import ServiceEntry
from bmcalc.reporting.templates import Bulletin, BulletinConfig

logger = logging.getLogger(__name__)


def build_bulletin(entries: Iterable[ServiceEntry], config: BulletinConfig) -> Bulletin:
    """Filter by the configured contractor and period, then roll up by code.

    Raises:
        NothingToExportError: If no entry survives the filters
    """
    period = config.period if (config.period.start or config.period.end) else None
    summaries = summarize(entries, contractor=config.contractor or None, period=period)
    selected = entries_for_export(summaries)
    if not selected:
        raise NothingToExportError()

    rollups = group_by_code(selected)
    total = sum((rollup.total_value for rollup in rollups), Decimal("0"))

    logger.info(
        f"Bulletin '{config.heading}': {len(selected)} entries, "
        f"{len(rollups)} codes, total {total}"
    )
    return Bulletin(config=config, rollups=rollups, entries=selected, total_value=total)
