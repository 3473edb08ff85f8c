"""Database layer for BMCalc with async SQLAlchemy."""

from bmcalc.db.connection import close_db, get_session, init_db
from bmcalc.db.models import (
    Base,
    DailyReportModel,
    PriceItemModel,
    PriceSheetFileModel,
    ServiceEntryModel,
)

__all__ = [
    "Base",
    "DailyReportModel",
    "PriceItemModel",
    "PriceSheetFileModel",
    "ServiceEntryModel",
    "close_db",
    "get_session",
    "init_db",
]
