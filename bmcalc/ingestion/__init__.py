"""Price sheet ingestion for BMCalc.

Parses contractor price sheets (BM) into catalog items. The database-backed
``PriceSheetIngestor`` lives in ``bmcalc.ingestion.pricesheets``.
"""

from bmcalc.ingestion.columns import ColumnInferenceSettings, ColumnMap, infer_columns
from bmcalc.ingestion.contractor import ContractorInfo, detect_contractor
from bmcalc.ingestion.price_parser import is_plausible_price, parse_price

__all__ = [
    "ColumnInferenceSettings",
    "ColumnMap",
    "ContractorInfo",
    "detect_contractor",
    "infer_columns",
    "is_plausible_price",
    "parse_price",
]
