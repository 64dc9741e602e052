"""Cache-aside repository fronting one async data source.

The repository keeps a single named record in its storage backend and
returns it while fresh. When it is stale, exactly one fetch runs no matter
how many callers ask at once; all of them get that fetch's outcome.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from repocache.clock import Clock, SystemClock
from repocache.data.config import (
    FetchFunction,
    PostProcessor,
    RepocacheSettings,
    RepositoryConfig,
    StorageBackend,
    normalize_config,
)
from repocache.data.storage import StorageAdapter, create_storage
from repocache.models.records import DataStatus, InvalidationResult, StoredRecord
from repocache.services.freshness import evaluate
from repocache.services.mapping import normalize, post_process
from repocache.services.syncer import FetchedCallback, SyncPhase, SyncScheduler, notify

logger = logging.getLogger(__name__)


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks the error as seen when every waiter was cancelled before it landed
    if not task.cancelled():
        task.exception()


class Repository:
    """Single-entry cache-aside repository.

    Usage:
        repo = Repository(
            "weather",
            fetch=json_fetcher("https://example.com/weather"),
            stale_after=60_000,
            field_map={"temperature": "t", "windspeed": "w"},
        )
        data = await repo.get_data()
        await repo.init_syncer(on_fetched=print)
    """

    def __init__(
        self,
        name: str,
        fetch: FetchFunction,
        *,
        stale_after: float | None = None,
        field_map: Any = None,
        post_process: PostProcessor | None = None,
        backend: StorageBackend | str | None = None,
        storage: StorageAdapter | None = None,
        clock: Clock | None = None,
        settings: RepocacheSettings | None = None,
    ):
        """Initialize the repository.

        Args:
            name: Key the cached record is stored under.
            fetch: Async zero-argument callable returning raw data.
            stale_after: Milliseconds after which data is stale; 0 = never.
            field_map: Rename map {output: input}, or [map] for lists of items.
            post_process: Function applied to the normalized data.
            backend: Storage backend; ignored when storage is given.
            storage: Explicit storage adapter instance.
            clock: Time source; defaults to the system clock.
            settings: Defaults source; defaults to get_settings().

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        self.config: RepositoryConfig = normalize_config(
            name,
            fetch,
            stale_after=stale_after,
            field_map=field_map,
            post_process=post_process,
            backend=backend,
            settings=settings,
        )
        self._storage = storage if storage is not None else create_storage(self.config.backend, settings)
        self._clock = clock if clock is not None else SystemClock()

        # Idle when None, otherwise the shared fetch every caller awaits
        self._inflight: asyncio.Task | None = None
        # Bumped by init_syncer/destroy_syncer; a stale init must not start the schedule
        self._sync_generation = 0

        self._syncer = SyncScheduler(
            self.refresh,
            self.config.sync_interval_ms,
            self._clock,
            name=self.config.name,
        )

    async def __aenter__(self) -> "Repository":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def storage(self) -> StorageAdapter:
        return self._storage

    @property
    def is_fetching(self) -> bool:
        return self._inflight is not None

    @property
    def syncer_phase(self) -> SyncPhase:
        return self._syncer.phase

    async def get_data(self) -> Any:
        """Get cached data if up to date, otherwise fetch fresh data.

        Concurrent calls share one in-flight operation and its outcome.

        Returns:
            The cached or freshly fetched (normalized, post-processed) data.

        Raises:
            Exception: Whatever the fetch function or storage backend raised.
        """
        return await self._single_flight(self._load)

    async def refresh(self) -> Any:
        """Fetch fresh data regardless of the cache state.

        Joins an operation already in flight instead of starting another.
        """
        return await self._single_flight(self._fetch_and_store)

    async def _single_flight(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._run_inflight(operation))
            self._inflight.add_done_callback(_retrieve_exception)
        else:
            logger.debug(f"Joining in-flight fetch for {self.name}")
        # shield: a cancelled caller must not cancel the fetch other callers share
        return await asyncio.shield(self._inflight)

    async def _run_inflight(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await operation()
        finally:
            self._inflight = None

    async def _load(self) -> Any:
        record = await self._storage.get(self.name)
        freshness = evaluate(record, self.config.stale_after, self._clock.now_ms())
        if freshness.up_to_date:
            logger.debug(f"Cache hit for {self.name}")
            return freshness.data
        return await self._fetch_and_store()

    async def _fetch_and_store(self) -> Any:
        logger.debug(f"Fetching fresh data for {self.name}")
        raw = await self.config.fetch()
        data = post_process(normalize(raw, self.config.field_map), self.config.post_process)

        await self._storage.set(
            self.name,
            StoredRecord(data=data, fetched_at=self._clock.now_ms(), invalid=False),
        )
        return data

    async def get_data_up_to_date_status(self) -> DataStatus:
        """Report whether the cached data is up to date. Never fetches."""
        record = await self._storage.get(self.name)
        freshness = evaluate(record, self.config.stale_after, self._clock.now_ms())

        return DataStatus(
            is_data_up_to_date=freshness.up_to_date,
            last_fetched=freshness.fetched_at,
            is_invalid=freshness.invalid,
            local_data=freshness.data,
        )

    async def invalidate_data(self) -> InvalidationResult:
        """Mark the cached data invalid without deleting it.

        The next get_data() call fetches. Invalidating a repository that has
        never fetched stores an empty invalid marker and changes nothing
        status-wise.

        Returns:
            InvalidationResult with the record before and after.
        """
        prev = await self._storage.get(self.name)
        if prev is None:
            next_record = StoredRecord(invalid=True)
        else:
            next_record = prev.model_copy(update={"invalid": True})

        await self._storage.set(self.name, next_record)
        logger.debug(f"Invalidated data for {self.name}")
        return InvalidationResult(prev_data=prev, next_data=next_record)

    async def clear_data(self) -> StoredRecord | None:
        """Delete the cached record.

        Returns:
            The record as it was before clearing, or None.
        """
        prev = await self._storage.get(self.name)
        await self._storage.set(self.name, None)
        logger.debug(f"Cleared data for {self.name}")
        return prev

    async def init_syncer(self, on_fetched: FetchedCallback | None = None) -> None:
        """Start refreshing the data in the background as it goes stale.

        Stale data is fetched right away and on_fetched is called, then the
        data is refreshed every stale_after milliseconds (at least 1000).
        Fresh data is first left alone until it goes stale. Returns once the
        schedule is armed; a running schedule is replaced.

        Args:
            on_fetched: Plain or coroutine function receiving the fresh data.

        Raises:
            Exception: If the immediate fetch fails; the scheduler stays idle.
        """
        self._syncer.stop()
        self._sync_generation += 1
        generation = self._sync_generation
        status = await self.get_data_up_to_date_status()

        if status.is_data_up_to_date:
            if generation == self._sync_generation:
                age = self._clock.now_ms() - status.last_fetched
                self._syncer.start(on_fetched, first_delay_ms=self.config.stale_after - age)
            return

        data = await self.get_data()
        # destroy_syncer() or another init_syncer() ran while we were fetching
        if generation != self._sync_generation:
            logger.debug(f"Sync for {self.name} cancelled during init")
            return
        self._syncer.start(on_fetched)
        await notify(on_fetched, data)

    def destroy_syncer(self) -> None:
        """Stop the background refresh. A fetch already running completes.

        Also cancels an init_syncer() still waiting on its first fetch.
        """
        self._sync_generation += 1
        self._syncer.stop()

    async def aclose(self) -> None:
        """Stop the background refresh and wait for its task to finish."""
        await self._syncer.aclose()
