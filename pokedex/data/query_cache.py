"""Request-deduplicating query cache with freshness windows and invalidation.

Every read goes through `QueryCache.fetch`. At most one fetch per key is in
flight at any time; concurrent readers of that key share its result. Cached
data is served while it is younger than the caller's freshness window and
has not been invalidated. Invalidation detaches in-flight fetches so their
results are discarded instead of overwriting newer state.
"""

import asyncio
import logging
import sqlite3
import time
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Hashable, Iterable, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from pokedex.core.errors import NetworkError, NotFoundError, PokedexError, StorageError
from pokedex.core.models import InfinitePage, PokemonSummary
from pokedex.utils.config import Config

logger = logging.getLogger(__name__)

QueryKey = tuple[Hashable, ...]
QueryFn = Callable[[], Awaitable[Any]]


class QueryState(str, Enum):
    """Lifecycle of a cache entry."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class CacheEntry(BaseModel):
    """Cached state for one query key."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: tuple
    data: Any = None
    has_data: bool = False
    fetched_at: Optional[float] = None
    state: QueryState = QueryState.IDLE
    error: Optional[Exception] = None
    is_invalidated: bool = False
    generation: int = 0

    def is_stale(self, now: float, stale_time: float) -> bool:
        if not self.has_data or self.is_invalidated or self.fetched_at is None:
            return True
        return now - self.fetched_at >= stale_time


class QueryResult(BaseModel):
    """The `{data, is_loading, error}` triple handed to presentation code."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Any = None
    is_loading: bool = False
    is_fetching: bool = False
    error: Optional[Exception] = None

    @property
    def is_success(self) -> bool:
        return self.error is None and not self.is_loading


class Outcome(BaseModel):
    """Result of one task in a fan-out: either a value or an error."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle(awaitables: Iterable[Awaitable[Any]]) -> list[Outcome]:
    """Run awaitables concurrently; one failing never fails the others."""
    results = await asyncio.gather(*awaitables, return_exceptions=True)
    return [
        Outcome(error=r) if isinstance(r, BaseException) else Outcome(value=r)
        for r in results
    ]


def translate_error(exc: BaseException) -> BaseException:
    """Map raw transport and storage exceptions onto the error taxonomy.

    Exceptions outside the known families are returned unchanged.
    """
    if isinstance(exc, NetworkError) and exc.status_code == 404:
        return NotFoundError(exc.message)
    if isinstance(exc, PokedexError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 404:
            return NotFoundError(f"Resource not found: {exc.request.url}")
        return NetworkError(str(exc), status_code=status)
    if isinstance(exc, httpx.HTTPError):
        return NetworkError(str(exc))
    if isinstance(exc, (sqlite3.Error, OSError)):
        return StorageError(str(exc))
    return exc


class QueryCache:
    """Explicitly constructed cache client shared by all readers."""

    def __init__(
        self,
        retries: int = 1,
        retry_delay: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retries = retries
        self.retry_delay = retry_delay
        self._clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._in_flight: dict[QueryKey, asyncio.Task] = {}
        self._query_fns: dict[QueryKey, tuple[QueryFn, float]] = {}
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, cfg: Config) -> "QueryCache":
        return cls(retries=cfg.network_retries, retry_delay=cfg.retry_delay)

    def _entry(self, key: QueryKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        return entry

    async def fetch(self, key: Iterable[Hashable], fn: QueryFn, stale_time: float = 0) -> Any:
        """Return data for `key`, running `fn` only when the entry is stale.

        Raises:
            PokedexError: the translated failure of `fn` once retries are spent.
        """
        key = tuple(key)
        entry = self._entry(key)
        self._query_fns[key] = (fn, stale_time)

        if not entry.is_stale(self._clock(), stale_time):
            logger.debug("Cache HIT for key: %s", key)
            return entry.data

        task = self._in_flight.get(key)
        if task is None:
            logger.debug("Cache MISS for key: %s", key)
            task = asyncio.create_task(self._run(key, entry, entry.generation, fn))
            self._in_flight[key] = task
        else:
            logger.debug("Joining in-flight fetch for key: %s", key)
        # Shielded so a cancelled reader never aborts the shared fetch
        return await asyncio.shield(task)

    def _is_current(self, key: QueryKey, entry: CacheEntry, generation: int) -> bool:
        return self._entries.get(key) is entry and entry.generation == generation

    async def _run(self, key: QueryKey, entry: CacheEntry, generation: int, fn: QueryFn) -> Any:
        entry.state = QueryState.LOADING
        try:
            data = await self._call_with_retry(key, fn)
        except BaseException as e:
            if self._is_current(key, entry, generation):
                entry.state = QueryState.ERROR
                entry.error = e if isinstance(e, Exception) else None
            raise
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

        if self._is_current(key, entry, generation):
            entry.data = data
            entry.has_data = True
            entry.fetched_at = self._clock()
            entry.state = QueryState.SUCCESS
            entry.error = None
            entry.is_invalidated = False
        else:
            logger.debug("Discarding result of detached fetch for key: %s", key)
        return data

    async def _call_with_retry(self, key: QueryKey, fn: QueryFn) -> Any:
        attempt = 0
        while True:
            try:
                return await fn()
            except Exception as e:
                error = translate_error(e)
                if isinstance(error, PokedexError) and error.retryable and attempt < self.retries:
                    attempt += 1
                    logger.warning("Retrying %s after error: %s (attempt %d)", key, error, attempt)
                    await asyncio.sleep(self.retry_delay)
                    continue
                if error is e:
                    raise
                raise error from e

    async def observe(self, key: Iterable[Hashable], fn: QueryFn, stale_time: float = 0) -> QueryResult:
        """Subscription-style read: failures are reported, not raised."""
        key = tuple(key)
        try:
            data = await self.fetch(key, fn, stale_time)
        except PokedexError as e:
            entry = self._entries.get(key)
            data = entry.data if entry is not None and entry.has_data else None
            return QueryResult(data=data, error=e)
        return QueryResult(data=data)

    def snapshot(self, key: Iterable[Hashable]) -> QueryResult:
        """Current state of `key` without triggering a fetch."""
        key = tuple(key)
        entry = self._entries.get(key)
        fetching = key in self._in_flight
        if entry is None:
            return QueryResult(is_loading=fetching, is_fetching=fetching)
        return QueryResult(
            data=entry.data if entry.has_data else None,
            is_loading=fetching and not entry.has_data,
            is_fetching=fetching,
            error=entry.error,
        )

    def is_fetching(self, key: Iterable[Hashable]) -> bool:
        return tuple(key) in self._in_flight

    def get_entry(self, key: Iterable[Hashable]) -> Optional[CacheEntry]:
        return self._entries.get(tuple(key))

    def get_query_data(self, key: Iterable[Hashable]) -> Any:
        entry = self._entries.get(tuple(key))
        return entry.data if entry is not None and entry.has_data else None

    def set_query_data(self, key: Iterable[Hashable], data: Any) -> None:
        entry = self._entry(tuple(key))
        entry.data = data
        entry.has_data = True
        entry.fetched_at = self._clock()
        entry.state = QueryState.SUCCESS
        entry.error = None
        entry.is_invalidated = False

    def _matching(self, prefix: QueryKey) -> list[QueryKey]:
        return [key for key in self._entries if key[:len(prefix)] == prefix]

    def invalidate(self, prefix: Iterable[Hashable], refetch: bool = False) -> int:
        """Mark every entry under `prefix` stale.

        In-flight fetches for those keys are detached: they finish, but their
        results are discarded. With `refetch`, matched entries are reloaded in
        the background with their last query function.
        """
        prefix = tuple(prefix)
        matched = self._matching(prefix)
        for key in matched:
            entry = self._entries[key]
            entry.is_invalidated = True
            entry.generation += 1
            if entry.state == QueryState.LOADING:
                entry.state = QueryState.IDLE
            self._in_flight.pop(key, None)
            if refetch and key in self._query_fns:
                fn, stale_time = self._query_fns[key]
                task = asyncio.create_task(self._refetch_in_background(key, fn, stale_time))
                self._background.add(task)
                task.add_done_callback(self._background.discard)
        logger.debug("Invalidated %d entries under %s", len(matched), prefix)
        return len(matched)

    async def _refetch_in_background(self, key: QueryKey, fn: QueryFn, stale_time: float) -> None:
        try:
            await self.fetch(key, fn, stale_time)
        except PokedexError as e:
            # Already recorded on the entry for the next snapshot
            logger.warning("Background refetch of %s failed: %s", key, e)

    async def wait_idle(self) -> None:
        """Wait for background refetches to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def remove(self, prefix: Iterable[Hashable]) -> None:
        for key in self._matching(tuple(prefix)):
            del self._entries[key]
            self._in_flight.pop(key, None)
            self._query_fns.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._in_flight.clear()
        self._query_fns.clear()


class Mutation:
    """A write with the `{mutate(vars), is_pending}` shape.

    `on_success` runs only after `fn` has completed, so dependent cache
    entries are never invalidated speculatively.
    """

    def __init__(
        self,
        fn: Callable[[Any], Awaitable[Any]],
        on_success: Optional[Callable[[Any, Any], None]] = None,
    ):
        self._fn = fn
        self._on_success = on_success
        self._pending = 0
        self.data: Any = None
        self.error: Optional[BaseException] = None

    @property
    def is_pending(self) -> bool:
        return self._pending > 0

    async def mutate(self, variables: Any) -> Any:
        self._pending += 1
        try:
            try:
                result = await self._fn(variables)
            except Exception as e:
                error = translate_error(e)
                self.error = error
                if error is e:
                    raise
                raise error from e
            if self._on_success is not None:
                self._on_success(result, variables)
            self.data = result
            self.error = None
            return result
        finally:
            self._pending -= 1


class InfiniteQuery:
    """Offset-cursor pagination over a list endpoint.

    Each page is its own cache entry under `(*key, "page", offset)`, so a page
    is fetched once and concurrent requests for the same page share a fetch.
    """

    def __init__(
        self,
        cache: QueryCache,
        key: Iterable[Hashable],
        fetch_page: Callable[[int], Awaitable[InfinitePage]],
        initial_param: int = 0,
        stale_time: float = 0,
    ):
        self._cache = cache
        self.key = tuple(key)
        self._fetch_page = fetch_page
        self.initial_param = initial_param
        self.stale_time = stale_time
        self._params: list[int] = []
        self.error: Optional[BaseException] = None

    def _page_key(self, param: int) -> QueryKey:
        return (*self.key, "page", param)

    async def _load(self, param: int) -> InfinitePage:
        try:
            page = await self._cache.fetch(
                self._page_key(param), partial(self._fetch_page, param), self.stale_time
            )
        except PokedexError as e:
            self.error = e
            raise
        self.error = None
        if param not in self._params:
            self._params.append(param)
        return page

    @property
    def pages(self) -> list[InfinitePage]:
        pages = []
        for param in self._params:
            page = self._cache.get_query_data(self._page_key(param))
            if page is not None:
                pages.append(page)
        return pages

    @property
    def items(self) -> list[PokemonSummary]:
        return [item for page in self.pages for item in page.items]

    @property
    def next_param(self) -> Optional[int]:
        pages = self.pages
        return pages[-1].next_offset if pages else None

    @property
    def has_next_page(self) -> bool:
        return self.next_param is not None

    @property
    def is_loading(self) -> bool:
        return not self._params and self._cache.is_fetching(self._page_key(self.initial_param))

    @property
    def is_fetching_next_page(self) -> bool:
        param = self.next_param
        return param is not None and self._cache.is_fetching(self._page_key(param))

    async def fetch_first_page(self) -> list[InfinitePage]:
        if not self._params:
            await self._load(self.initial_param)
        return self.pages

    async def fetch_next_page(self) -> list[InfinitePage]:
        """Load the page after the last one; a no-op once pagination ends."""
        if not self._params:
            return await self.fetch_first_page()
        param = self.next_param
        if param is None or param in self._params:
            return self.pages
        await self._load(param)
        return self.pages

    async def refetch(self) -> list[InfinitePage]:
        """Reload every page from the first cursor, following fresh cursors."""
        wanted = max(len(self._params), 1)
        self._cache.invalidate(self.key)
        self._params = []
        param: Optional[int] = self.initial_param
        while param is not None and len(self._params) < wanted:
            page = await self._load(param)
            param = page.next_offset
        return self.pages
