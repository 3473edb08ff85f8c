"""BMCalc: daily reports, price-sheet reconciliation and measurement bulletins."""

__version__ = "0.1.0"
