"""
Durable key-value stores.

The application state is persisted as a handful of text blobs under namespaced
keys (e.g. `tower_mapper_sites`). Anything offering `get/set/delete` on strings
works; two implementations ship here:
- `MemoryStore`: a dict, used by tests and ephemeral sessions.
- `FileStore`: one file per key on disk.
"""

from __future__ import annotations

import logging
from hashlib import sha256
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sitemapper.core.env import resolve_project_path

if TYPE_CHECKING:
    from sitemapper.config.settings import Settings

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store backed by a dict."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data.keys())


class FileStore:
    """A filesystem-backed store; each key is a UTF-8 text file."""

    def __init__(self, base_dir: Path):
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _key_path(self, key: str) -> Path:
        """Return the file path for a key (hash-based, avoids filesystem path issues)."""
        digest = sha256(key.encode("utf-8")).hexdigest()
        return self._base_dir / f"{digest}.txt"

    def get(self, key: str) -> str | None:
        path = self._key_path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        """Write a value to disk.

        Writes via a temporary file + atomic replace to avoid partial/corrupt files.
        """
        path = self._key_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(str(value), encoding="utf-8")
        tmp.replace(path)
        logger.debug("store set key=%s bytes=%d", key, len(value))

    def delete(self, key: str) -> None:
        path = self._key_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return None


def build_store(settings: "Settings") -> KeyValueStore:
    """Create the store configured in `settings.storage`."""
    if settings.storage.backend == "memory":
        return MemoryStore()
    return FileStore(resolve_project_path(settings.storage.dir))
