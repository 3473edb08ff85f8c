"""AI extraction boundary: report and price-sheet scans/text -> structured data."""

from bmcalc.extraction.client import ExtractionClient
from bmcalc.extraction.models import (
    ExtractedActivity,
    ExtractedPriceItem,
    ExtractedReport,
    ExtractedService,
    ExtractionPayload,
    PriceSheetPayload,
)

__all__ = [
    "ExtractedActivity",
    "ExtractedPriceItem",
    "ExtractedReport",
    "ExtractedService",
    "ExtractionClient",
    "ExtractionPayload",
    "PriceSheetPayload",
]
