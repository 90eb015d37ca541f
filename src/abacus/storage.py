"""Storage backends for the shared folder and the device-local store.

Core logic only depends on the five operations of ``Storage``. Paths are
``/``-separated strings relative to the storage root; ``""`` is the root.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A storage operation failed."""


class StorageNotFound(StorageError):
    """The requested path does not exist."""


class Storage(ABC):
    """Minimal asynchronous file-system contract."""

    @abstractmethod
    async def exists(self, path: str) -> bool: ...

    @abstractmethod
    async def read(self, path: str) -> bytes: ...

    @abstractmethod
    async def write(self, path: str, data: bytes) -> None: ...

    @abstractmethod
    async def remove(self, path: str) -> None: ...

    @abstractmethod
    async def list(self, directory: str = "") -> set[str]: ...


def join(directory: str, name: str) -> str:
    """Join a storage directory and a file name."""
    directory = directory.strip("/")
    return f"{directory}/{name}" if directory else name


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


class LocalFileStorage(Storage):
    """Storage rooted at a directory on the local disk (e.g. a synced folder)."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        return self.root / path if path else self.root

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).exists)

    async def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as e:
            raise StorageNotFound(path) from e
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    async def write(self, path: str, data: bytes) -> None:
        await asyncio.to_thread(self._write_sync, self._resolve(path), data)

    @staticmethod
    def _write_sync(target: Path, data: bytes) -> None:
        # Write beside the target and swap, so readers never see a torn file
        tmp = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(target)
        except OSError as e:
            raise StorageError(f"Cannot write {target}: {e}") from e

    async def remove(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError as e:
            raise StorageNotFound(path) from e
        except OSError as e:
            raise StorageError(f"Cannot remove {path}: {e}") from e

    async def list(self, directory: str = "") -> set[str]:
        return await asyncio.to_thread(self._list_sync, directory)

    def _list_sync(self, directory: str) -> set[str]:
        folder = self._resolve(directory)
        try:
            return {join(directory, p.name) for p in folder.iterdir() if p.is_file()}
        except FileNotFoundError as e:
            raise StorageNotFound(directory) from e
        except OSError as e:
            raise StorageError(f"Cannot list {directory}: {e}") from e


class MemoryStorage(Storage):
    """In-memory storage, handy for tests and dry runs."""

    def __init__(self, files: dict[str, bytes] | None = None):
        self.files: dict[str, bytes] = dict(files or {})

    async def exists(self, path: str) -> bool:
        return path in self.files

    async def read(self, path: str) -> bytes:
        try:
            return self.files[path]
        except KeyError as e:
            raise StorageNotFound(path) from e

    async def write(self, path: str, data: bytes) -> None:
        self.files[path] = bytes(data)

    async def remove(self, path: str) -> None:
        if self.files.pop(path, None) is None:
            raise StorageNotFound(path)

    async def list(self, directory: str = "") -> set[str]:
        directory = directory.strip("/")
        prefix = f"{directory}/" if directory else ""
        return {
            path
            for path in self.files
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        }


def encode_json(payload: Any) -> bytes:
    return (json.dumps(payload, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


async def read_json(storage: Storage, path: str) -> Any | None:
    """Read and decode a JSON document, returning None when missing or malformed."""
    try:
        raw = await storage.read(path)
    except StorageNotFound:
        return None
    except StorageError as e:
        logger.warning("Treating %s as empty: %s", path, e)
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        # A sync client may not have finished writing this file yet
        logger.debug("Ignoring malformed JSON in %s: %s", path, e)
        return None


class LocalStore:
    """Device-local key/value store, never synced.

    Backed by a JSON file when ``path`` is given, otherwise kept in memory.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is None:
            self._data = {}
            if self.path and self.path.exists():
                try:
                    loaded = json.loads(self.path.read_text(encoding="utf-8"))
                    if isinstance(loaded, dict):
                        self._data = {k: v for k, v in loaded.items() if isinstance(v, str)}
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning("Ignoring unreadable local store %s: %s", self.path, e)
        return self._data

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str | None) -> None:
        data = self._load()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
