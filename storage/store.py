from __future__ import annotations

"""Key-value stores for exam data.

Values are JSON-compatible documents (lists/dicts). One key per logical
collection: subjects, per-subject question banks, stats, and exam results.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when a backing store cannot be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store. Values are copied through JSON so callers never share state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, str] = {}
        for k, v in (initial or {}).items():
            self.set(k, v)

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


def init_store(data_dir: Path) -> Path:
    """Ensure the data directory exists and return it."""
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def key_to_filename(key: str) -> str:
    """Percent-encode a key into one file name inside the data directory."""
    if not key:
        raise ValueError("Store keys must be non-empty")
    name = quote(key, safe="")
    # "." is left alone by quote(); a leading one would hide the file
    if name.startswith("."):
        name = "%2E" + name[1:]
    return f"{name}.json"


class JsonFileStore:
    """One `<encoded key>.json` file per key under a data directory.

    Keys may hold any characters; separators and other unsafe characters are
    percent-encoded, so plain keys such as `exam-results` keep readable names.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = init_store(Path(data_dir))

    def _path(self, key: str) -> Path:
        return self.data_dir / key_to_filename(key)

    def get(self, key: str) -> Optional[Any]:
        p = self._path(key)
        try:
            with p.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read {p}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        p = self._path(key)
        # write to a sibling temp file, then swap in
        try:
            fd, tmp = tempfile.mkstemp(prefix=".tmp-", suffix=".part", dir=self.data_dir)
        except OSError as e:
            raise StoreError(f"Cannot write {p}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp, p)
        except OSError as e:
            Path(tmp).unlink(missing_ok=True)
            raise StoreError(f"Cannot write {p}: {e}") from e
        logger.debug("Wrote %s", p)

    def delete(self, key: str) -> None:
        p = self._path(key)
        try:
            p.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot delete {p}: {e}") from e

    def keys(self) -> list[str]:
        return sorted(unquote(p.name[: -len(".json")]) for p in self.data_dir.glob("*.json"))
