"""Cache-aside repository with single-flight fetches and background sync."""

from repocache.clock import Clock, SystemClock
from repocache.data.config import (
    SYNC_INTERVAL_FLOOR_MS,
    RepocacheSettings,
    RepositoryConfig,
    StorageBackend,
    get_settings,
)
from repocache.data.http_client import json_fetcher
from repocache.data.storage import (
    LocalVariableStorage,
    NamespacedStorage,
    SQLiteStorage,
    StorageAdapter,
    StorageArea,
    create_storage,
)
from repocache.exceptions import ConfigurationError, NormalizationError, RepositoryError
from repocache.models.records import DataStatus, InvalidationResult, StoredRecord
from repocache.services.repository import Repository
from repocache.services.syncer import SyncPhase, SyncScheduler

__version__ = "0.1.0"

__all__ = [
    "SYNC_INTERVAL_FLOOR_MS",
    "Clock",
    "ConfigurationError",
    "DataStatus",
    "InvalidationResult",
    "LocalVariableStorage",
    "NamespacedStorage",
    "NormalizationError",
    "RepocacheSettings",
    "Repository",
    "RepositoryConfig",
    "RepositoryError",
    "SQLiteStorage",
    "StorageAdapter",
    "StorageArea",
    "StorageBackend",
    "StoredRecord",
    "SyncPhase",
    "SyncScheduler",
    "SystemClock",
    "create_storage",
    "get_settings",
    "json_fetcher",
]
