"""Settings and repository configuration normalization.

Every default a repository relies on is resolved here, once, at construction:

    =======================  ======================  ====================
    option                   default                 env var
    =======================  ======================  ====================
    stale_after (ms)         1000                    REPOCACHE_STALE_AFTER_MS
    backend                  sqlite                  REPOCACHE_BACKEND
    SQLite database path     data/repocache.db       REPOCACHE_DB_PATH
    namespaced area file     None (memory only)      REPOCACHE_AREA_PATH
    field_map                None (identity)         -
    post_process             None (identity)         -
    =======================  ======================  ====================

A missing or negative stale_after falls back to the default. Zero means the
data never goes stale on its own. Positive values are kept as configured; the
1000 ms floor applies to scheduler delays only.
"""

from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from repocache.exceptions import ConfigurationError

# Scheduler delays never go below this, whatever stale_after says.
SYNC_INTERVAL_FLOOR_MS = 1000

FetchFunction = Callable[[], Awaitable[Any]]
PostProcessor = Callable[[Any], Any]
FieldMap = dict[str, str] | list[dict[str, str]]


class StorageBackend(str, Enum):
    """Storage adapter implementations a repository can be configured with."""

    SQLITE = "sqlite"
    NAMESPACED = "namespaced"
    LOCAL_VARIABLE = "local_variable"


class RepocacheSettings(BaseSettings):
    """Process-wide defaults.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_path: Path = Field(default=Path("data/repocache.db"), alias="REPOCACHE_DB_PATH")
    area_path: Path | None = Field(default=None, alias="REPOCACHE_AREA_PATH")
    default_backend: StorageBackend = Field(default=StorageBackend.SQLITE, alias="REPOCACHE_BACKEND")
    default_stale_after_ms: int = Field(default=1000, ge=0, alias="REPOCACHE_STALE_AFTER_MS")


@lru_cache
def get_settings() -> RepocacheSettings:
    """Get repocache settings (cached singleton).

    Returns:
        RepocacheSettings with values from .env file or environment variables.
    """
    return RepocacheSettings()


class RepositoryConfig(BaseModel):
    """Fully populated, immutable repository configuration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    stale_after: int = Field(ge=0)  # milliseconds, 0 = never stale
    fetch: FetchFunction
    field_map: FieldMap | None = None
    post_process: PostProcessor | None = None
    backend: StorageBackend = StorageBackend.SQLITE

    @property
    def sync_interval_ms(self) -> int:
        """Steady-state period of the sync scheduler."""
        return max(self.stale_after, SYNC_INTERVAL_FLOOR_MS)


def _resolve_stale_after(stale_after: float | None, default: int) -> int:
    if stale_after is None or stale_after < 0:
        return default
    return int(stale_after)


def _resolve_backend(backend: StorageBackend | str | None, default: StorageBackend) -> StorageBackend:
    if backend is None:
        return default
    try:
        return StorageBackend(backend)
    except ValueError:
        choices = ", ".join(b.value for b in StorageBackend)
        raise ConfigurationError(
            f"Unknown storage backend {backend!r} (expected one of: {choices})"
        ) from None


def _check_field_map(field_map: Any) -> FieldMap | None:
    if field_map is None:
        return None
    if isinstance(field_map, Mapping):
        return dict(field_map)
    if isinstance(field_map, list | tuple):
        if len(field_map) != 1 or not isinstance(field_map[0], Mapping):
            raise ConfigurationError(
                "A list field_map must hold exactly one mapping, applied to every item"
            )
        return [dict(field_map[0])]
    raise ConfigurationError(f"field_map must be a mapping or a one-item list, got {type(field_map).__name__}")


def normalize_config(
    name: str,
    fetch: FetchFunction,
    *,
    stale_after: float | None = None,
    field_map: Any = None,
    post_process: PostProcessor | None = None,
    backend: StorageBackend | str | None = None,
    settings: RepocacheSettings | None = None,
) -> RepositoryConfig:
    """Resolve defaults and validate raw repository options.

    Args:
        name: Key addressing the single cached entry.
        fetch: Async zero-argument callable producing raw data.
        stale_after: Staleness threshold in milliseconds.
        field_map: Output-to-input field rename map, or a one-item list of one.
        post_process: Optional function applied after normalization.
        backend: Storage backend, as enum or its string value.
        settings: Defaults source; uses get_settings() when omitted.

    Returns:
        RepositoryConfig with every field populated.

    Raises:
        ConfigurationError: If any option is invalid.
    """
    if settings is None:
        settings = get_settings()

    if not callable(fetch):
        raise ConfigurationError("fetch must be an async callable")
    if post_process is not None and not callable(post_process):
        raise ConfigurationError("post_process must be callable")

    try:
        return RepositoryConfig(
            name=name,
            stale_after=_resolve_stale_after(stale_after, settings.default_stale_after_ms),
            fetch=fetch,
            field_map=_check_field_map(field_map),
            post_process=post_process,
            backend=_resolve_backend(backend, settings.default_backend),
        )
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
