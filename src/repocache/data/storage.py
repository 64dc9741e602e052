"""Storage adapters holding a repository's single stored record.

All adapters satisfy the same two-method async contract; the repository
never knows which one it talks to.
"""

import asyncio
import copy
import json
import logging
import time
from pathlib import Path
from typing import Any, Protocol

from repocache.data.config import RepocacheSettings, StorageBackend, get_settings
from repocache.data.database import get_db
from repocache.exceptions import ConfigurationError
from repocache.models.records import StoredRecord

logger = logging.getLogger(__name__)


class StorageAdapter(Protocol):
    """Async key-value capability for stored records."""

    async def get(self, key: str) -> StoredRecord | None: ...

    async def set(self, key: str, value: StoredRecord | None) -> None: ...


class SQLiteStorage:
    """Durable storage in a SQLite database file.

    Records are stored as JSON text, one row per repository name.
    Writing None deletes the row.
    """

    def __init__(self, db_path: Path | None = None):
        """Initialize the adapter.

        Args:
            db_path: Database file; defaults to REPOCACHE_DB_PATH.
        """
        self._db_path = db_path

    async def get(self, key: str) -> StoredRecord | None:
        async with get_db(self._db_path) as db:
            cursor = await db.execute("SELECT value FROM records WHERE name = ?", (key,))
            row = await cursor.fetchone()

        if row is None:
            return None
        return StoredRecord.model_validate_json(row["value"])

    async def set(self, key: str, value: StoredRecord | None) -> None:
        async with get_db(self._db_path) as db:
            if value is None:
                await db.execute("DELETE FROM records WHERE name = ?", (key,))
            else:
                await db.execute(
                    """
                    INSERT INTO records (name, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value.model_dump_json(), int(time.time() * 1000)),
                )
            await db.commit()


class StorageArea:
    """Shared key-value area partitioned into namespaces.

    Values are kept as JSON-compatible dicts. When a path is given the whole
    area is mirrored to a JSON file after every write and loaded lazily on
    first access.
    """

    def __init__(self, path: Path | None = None):
        self._path = path
        self._namespaces: dict[str, dict[str, Any]] | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path | None:
        return self._path

    async def _load(self) -> dict[str, dict[str, Any]]:
        if self._namespaces is None:
            if self._path is not None and self._path.exists():
                text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
                self._namespaces = json.loads(text) if text.strip() else {}
            else:
                self._namespaces = {}
        return self._namespaces

    async def _flush(self) -> None:
        if self._path is None:
            return
        payload = json.dumps(self._namespaces, ensure_ascii=False)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(self._path.write_text, payload, encoding="utf-8")

    async def get(self, namespace: str, key: str) -> Any | None:
        async with self._lock:
            namespaces = await self._load()
            return copy.deepcopy(namespaces.get(namespace, {}).get(key))

    async def set(self, namespace: str, key: str, value: Any | None) -> None:
        async with self._lock:
            namespaces = await self._load()
            items = namespaces.setdefault(namespace, {})
            if value is None:
                items.pop(key, None)
                if not items:
                    del namespaces[namespace]
            else:
                items[key] = value
            await self._flush()

    async def keys(self, namespace: str) -> list[str]:
        async with self._lock:
            namespaces = await self._load()
            return sorted(namespaces.get(namespace, {}))


_areas: dict[Path | None, StorageArea] = {}


def default_area(path: Path | None = None) -> StorageArea:
    """Get or create the process-wide storage area for a file path.

    Areas are shared per path so every repository mirroring to the same file
    goes through the same lock. path=None gives the memory-only area.
    """
    if path not in _areas:
        _areas[path] = StorageArea(path)
    return _areas[path]


def reset_areas() -> None:
    """Forget all process-wide storage areas. Useful for testing."""
    _areas.clear()


class NamespacedStorage:
    """Storage in a namespace of a shared StorageArea.

    Repositories in the same process see each other's records when they
    share a namespace and a name.
    """

    def __init__(self, namespace: str = "repocache", area: StorageArea | None = None):
        self._namespace = namespace
        self._area = area if area is not None else default_area(get_settings().area_path)

    async def get(self, key: str) -> StoredRecord | None:
        raw = await self._area.get(self._namespace, key)
        if raw is None:
            return None
        return StoredRecord.model_validate(raw)

    async def set(self, key: str, value: StoredRecord | None) -> None:
        await self._area.set(
            self._namespace,
            key,
            None if value is None else value.model_dump(mode="json"),
        )


class LocalVariableStorage:
    """Keeps the record on the adapter instance; nothing outlives it.

    The key is ignored since each repository owns its own adapter.
    """

    def __init__(self) -> None:
        self.record: StoredRecord | None = None

    async def get(self, key: str) -> StoredRecord | None:
        return self.record

    async def set(self, key: str, value: StoredRecord | None) -> None:
        self.record = value


def create_storage(
    backend: StorageBackend | str,
    settings: RepocacheSettings | None = None,
) -> StorageAdapter:
    """Build the storage adapter for a configured backend.

    Raises:
        ConfigurationError: If the backend is not recognized.
    """
    if settings is None:
        settings = get_settings()

    try:
        backend = StorageBackend(backend)
    except ValueError:
        raise ConfigurationError(f"Unknown storage backend {backend!r}") from None

    logger.debug(f"Creating {backend.value} storage")
    if backend == StorageBackend.SQLITE:
        return SQLiteStorage(settings.db_path)
    if backend == StorageBackend.NAMESPACED:
        return NamespacedStorage(area=default_area(settings.area_path))
    return LocalVariableStorage()
