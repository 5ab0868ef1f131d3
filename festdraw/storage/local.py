"""Fast local cache tier: one JSON text file per key."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Optional, Protocol, Union

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class LocalTier(Protocol):
    """Synchronous key/value text storage. Failures surface as ``OSError``."""

    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, text: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def is_available(self) -> bool: ...


class LocalCache:
    """Directory backed cache, the local counterpart of the remote document.

    Writes go to a temporary file that is then moved into place, so a reader
    never sees a partially written document.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.directory / f"{key}.json"

    def is_available(self) -> bool:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return os.access(self.directory, os.W_OK)

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, key: str, text: str) -> None:
        path = self._path(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, path)
        logger.debug(f"Cached document '{key}' ({len(text)} chars)")

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass


class MemoryCache:
    """In-process cache with the same surface, used for tests and ephemeral runs."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def is_available(self) -> bool:
        return True

    def read(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def write(self, key: str, text: str) -> None:
        self._items[key] = text

    def delete(self, key: str) -> None:
        self._items.pop(key, None)


__all__ = ["LocalCache", "LocalTier", "MemoryCache"]
