"""Reporting module for BMCalc.

Renders measurement bulletins (BM) to xlsx, pdf and csv.
"""

from bmcalc.reporting.builder import build_bulletin
from bmcalc.reporting.csv_export import render_entries_csv
from bmcalc.reporting.excel_export import render_bulletin_xlsx
from bmcalc.reporting.pdf_export import render_bulletin_pdf
from bmcalc.reporting.templates import Bulletin, BulletinConfig, ReportTemplate

__all__ = [
    "Bulletin",
    "BulletinConfig",
    "ReportTemplate",
    "build_bulletin",
    "render_bulletin_pdf",
    "render_bulletin_xlsx",
    "render_entries_csv",
]
