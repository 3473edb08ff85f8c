"""Byte storage for uploaded price sheets."""

from __future__ import annotations

import os
import re
import time
from pathlib import Path
from typing import Protocol

import aiofiles

NO_CONTRACTOR_DIR = "sem-contratada"

_UNSAFE = re.compile(r"[\\/:*?\"<>|]+")


def storage_key(contractor: str | None, file_name: str, timestamp_ms: int | None = None) -> str:
    """``<contractor or sem-contratada>/<epoch ms>-<file name>``."""
    folder = _UNSAFE.sub("-", (contractor or "").strip()) or NO_CONTRACTOR_DIR
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{folder}/{stamp}-{_UNSAFE.sub('-', Path(file_name).name)}"


class FileStorage(Protocol):
    async def save(self, key: str, content: bytes) -> None: ...

    async def read(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...


class LocalFileStorage:
    """Stores sheets under a root directory on disk."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / key

    async def save(self, key: str, content: bytes) -> None:
        path = self._path(key)
        os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as out_file:
            await out_file.write(content)

    async def read(self, key: str) -> bytes:
        async with aiofiles.open(self._path(key), "rb") as in_file:
            return await in_file.read()

    async def delete(self, key: str) -> None:
        """Remove a stored file; a missing file is not an error."""
        path = self._path(key)
        if path.exists():
            os.remove(path)

    async def exists(self, key: str) -> bool:
        return self._path(key).exists()


class InMemoryFileStorage:
    """Dict-backed storage for tests."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    async def save(self, key: str, content: bytes) -> None:
        self.files[key] = content

    async def read(self, key: str) -> bytes:
        return self.files[key]

    async def delete(self, key: str) -> None:
        self.files.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self.files
