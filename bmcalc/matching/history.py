"""Match history: learned description -> catalog code mappings.

Written only when an operator confirms or corrects a match; entries never
expire. Keys are descriptions lower-cased and trimmed (see ``history_key``).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

from bmcalc.catalog.normalize import history_key

logger = logging.getLogger(__name__)


class MatchHistory(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, code: str) -> None: ...

    def items(self) -> Iterator[tuple[str, str]]: ...


class InMemoryMatchHistory:
    """Dict-backed history for tests and one-off sessions."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._store: dict[str, str] = dict(entries or {})

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def put(self, key: str, code: str) -> None:
        self._store[key] = code

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._store.items()))

    def __len__(self) -> int:
        return len(self._store)


class JsonFileMatchHistory(InMemoryMatchHistory):
    """History persisted as a JSON object on disk; rewritten on every put."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Match history at {self.path} is not a JSON object")
        return {str(key): str(value) for key, value in data.items()}

    def put(self, key: str, code: str) -> None:
        super().put(key, code)
        self._flush()

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(self._store, f, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp_name, self.path)
        logger.debug(f"Match history saved ({len(self._store)} entries) to {self.path}")


def lookup(history: MatchHistory, description: str | None) -> str | None:
    """Learned code for ``description``.

    Exact key first; otherwise the first key that contains the query or is
    contained by it.
    """
    key = history_key(description)
    if not key:
        return None

    code = history.get(key)
    if code:
        return code

    for stored_key, stored_code in history.items():
        if stored_key and (stored_key in key or key in stored_key):
            return stored_code

    return None


def remember(history: MatchHistory, description: str, code: str) -> None:
    key = history_key(description)
    if key:
        history.put(key, code)
