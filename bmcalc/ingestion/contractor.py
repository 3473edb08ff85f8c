"""Contractor and contract number detection in sheet headers."""

from __future__ import annotations

import re
from dataclasses import dataclass

from bmcalc.ingestion.columns import Grid, cell_text

HEADER_ROWS = 15

_CONTRACTOR_LABEL = re.compile(r"Contratada[:\s]*", re.IGNORECASE)
_CONTRACTOR_NAME = re.compile(
    r"[A-ZÀ-Ú][A-ZÀ-Ú\s\-\.&]+(?:LTDA|S\.?A\.?|EPP|ME|EIRELI)?",
    re.IGNORECASE,
)
_CONTRACT_PATTERN = re.compile(
    r"(?:N[º°o]\.?\s*(?:do\s+)?Contrato|Contrato(?:\s+n[º°o]\.?)?)[:\s]*(\d{10,})",
    re.IGNORECASE,
)
# Row cells are joined with spaces, so the text after "Contratada:" can run
# into the next label of the same row.
_NEXT_LABEL = re.compile(
    r"\s(?:N[º°o]\.?\s*(?:do\s+)?Contrato|Contrato|CNPJ|Obra|Fiscal|Per[ií]odo|Data|Local)\b.*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ContractorInfo:
    contractor: str = ""
    contract: str = ""


def _contractor_after(text: str, label_end: int) -> str:
    remainder = _NEXT_LABEL.sub("", text[label_end:])
    match = _CONTRACTOR_NAME.match(remainder)
    if not match:
        return ""
    return re.sub(r"\s+", " ", match.group(0)).strip(" -")


def detect_contractor(grid: Grid, max_rows: int = HEADER_ROWS) -> ContractorInfo:
    """Look for "Contratada:" and "Contrato:" labels in the first rows.

    Stops as soon as both values are found; missing values are empty strings.
    """
    contractor = ""
    contract = ""

    for row in list(grid)[:max_rows]:
        text = " ".join(cell_text(cell) for cell in row or [])
        if not text.strip():
            continue

        if not contractor:
            label = _CONTRACTOR_LABEL.search(text)
            if label:
                contractor = _contractor_after(text, label.end())

        if not contract:
            match = _CONTRACT_PATTERN.search(text)
            if match:
                contract = match.group(1)

        if contractor and contract:
            break

    return ContractorInfo(contractor=contractor, contract=contract)
