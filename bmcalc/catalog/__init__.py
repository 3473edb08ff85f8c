"""Price catalog lookups for BMCalc."""

from bmcalc.catalog.catalog import PriceCatalog, sheets_summary
from bmcalc.catalog.normalize import (
    history_key,
    is_valid_service_code,
    normalize_code,
    normalize_description,
)

__all__ = [
    "PriceCatalog",
    "sheets_summary",
    "history_key",
    "is_valid_service_code",
    "normalize_code",
    "normalize_description",
]
