"""Price parsing for regional numeral formats.

Price sheets mix Brazilian (``1.234,56``), US (``1,234.56``) and
space-grouped (``1 234,56``) numerals, sometimes with currency markers. Naive
separator stripping corrupts one format or the other, so formats are detected
in a fixed priority order before falling back to a right-most separator rule.
"""

from __future__ import annotations

import math
import numbers
import re
from decimal import Decimal, InvalidOperation

ZERO = Decimal("0")

_CURRENCY_PATTERN = re.compile(r"(R\$|US\$|\$|€|BRL|USD|EUR)", re.IGNORECASE)

_BRAZILIAN_GROUPED = re.compile(r"-?\d{1,3}(\.\d{3})*,\d{2}")
_US_GROUPED = re.compile(r"-?\d{1,3}(,\d{3})*\.\d{2}")
_COMMA_DECIMAL = re.compile(r"-?\d+,\d{1,2}")
_SPACE_GROUPED = re.compile(r"-?\d{1,3}( \d{3})*[,.]\d{2}")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")

_NUMERIC_SHAPE = re.compile(r"^\s*(R\$|US\$|\$|€)?\s*-?\d[\d.,\s ]*$", re.IGNORECASE)


def parse_price(raw: object) -> Decimal:
    """Convert a raw cell into a Decimal. Never raises; returns 0 on junk.

    Examples:
        >>> parse_price("1.234,56")
        Decimal('1234.56')
        >>> parse_price("1,234.56")
        Decimal('1234.56')
        >>> parse_price("R$ 45,50")
        Decimal('45.50')
        >>> parse_price("abc")
        Decimal('0')
    """
    if raw is None or isinstance(raw, bool):
        return ZERO

    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else ZERO

    if isinstance(raw, numbers.Real):
        if not math.isfinite(float(raw)):
            return ZERO
        # str() keeps 0.1 as "0.1" instead of the binary expansion
        return Decimal(str(raw))

    text = _CURRENCY_PATTERN.sub("", str(raw))
    text = text.replace("\u00a0", " ").strip()
    if not text:
        return ZERO

    return _to_decimal(_normalize_separators(text))


def _normalize_separators(text: str) -> str:
    """Rewrite ``text`` so that '.' is the only decimal separator."""
    if _BRAZILIAN_GROUPED.fullmatch(text):
        return text.replace(".", "").replace(",", ".")

    if _US_GROUPED.fullmatch(text):
        return text.replace(",", "")

    if _COMMA_DECIMAL.fullmatch(text):
        return text.replace(",", ".")

    if _SPACE_GROUPED.fullmatch(text):
        return text.replace(" ", "").replace(",", ".")

    text = text.replace(" ", "")
    has_dot = "." in text
    has_comma = "," in text

    if has_dot and has_comma:
        # Right-most separator is the decimal point
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")

    if has_comma:
        return text.replace(",", ".")

    return text


def _to_decimal(text: str) -> Decimal:
    cleaned = _NON_NUMERIC.sub("", text)
    if not cleaned:
        return ZERO
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return ZERO
    return value if value.is_finite() else ZERO


def looks_numeric(raw: object) -> bool:
    """True for numbers and for text made only of digits, separators and a currency mark.

    ``parse_price`` drops letters, so "m2" or "X1" would parse to a number;
    positional heuristics check the cell shape first.
    """
    if raw is None or isinstance(raw, bool):
        return False
    if isinstance(raw, (Decimal, numbers.Real)):
        return True
    return bool(_NUMERIC_SHAPE.match(str(raw)))


def is_plausible_price(
    value: Decimal,
    low: Decimal = ZERO,
    high: Decimal = Decimal("1000000"),
) -> bool:
    """True when ``low < value < high`` (open interval)."""
    return low < value < high
