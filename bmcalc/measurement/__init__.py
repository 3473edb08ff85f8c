"""Measurement bulletins (BM) built from recorded service entries."""

from bmcalc.measurement.aggregator import (
    entries_for_export,
    filter_entries,
    group_by_code,
    summarize,
)

__all__ = ["entries_for_export", "filter_entries", "group_by_code", "summarize"]
