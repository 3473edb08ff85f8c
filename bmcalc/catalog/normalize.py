"""Text normalization helpers shared by the catalog and the reconciler."""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_SERVICE_CODE = re.compile(r"^[A-Z]{1,4}[\-\s]?\d")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9²³]+")

_SQUARE_UNIT = re.compile(r"(?<![a-zà-ÿ])m(²|2)(?![0-9])")
_CUBIC_UNIT = re.compile(r"(?<![a-zà-ÿ])m(³|3)(?![0-9])")


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_code(code: str | None) -> str:
    """Upper-case and keep alphanumerics only: ``"bso-01"`` -> ``"BSO01"``."""
    if not code:
        return ""
    return _NON_ALNUM.sub("", strip_accents(code).upper())


def normalize_description(text: str | None) -> str:
    """Accent-free lower-case text with collapsed whitespace."""
    if not text:
        return ""
    folded = strip_accents(text).lower()
    return re.sub(r"\s+", " ", folded).strip()


def history_key(description: str | None) -> str:
    """Key used by match history: lower-cased and trimmed, accents kept."""
    return (description or "").lower().strip()


def keyword_tokens(text: str | None, min_length: int = 3) -> list[str]:
    """Tokens of the normalized text at least ``min_length`` characters long."""
    return [
        token
        for token in _TOKEN_SPLIT.split(normalize_description(text))
        if len(token) >= min_length
    ]


def is_valid_service_code(code: str | None) -> bool:
    """True for codes shaped like ``BSO-01``, ``AB 12`` or ``X1``."""
    if not code:
        return False
    upper = code.strip().upper()
    return len(upper) >= 2 and bool(_SERVICE_CODE.match(upper))


def mentions_square_unit(text: str) -> bool:
    return bool(_SQUARE_UNIT.search(text.lower()))


def mentions_cubic_unit(text: str) -> bool:
    return bool(_CUBIC_UNIT.search(text.lower()))
