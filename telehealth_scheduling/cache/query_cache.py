"""In-process query cache addressed by immutable query keys."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from telehealth_scheduling.config import get_settings
from telehealth_scheduling.observability import get_observability_logger
from telehealth_scheduling.scheduling.query_keys import QueryKey, format_key, key_matches

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]
Listener = Callable[[QueryKey], None]


def _consume_exception(task: "asyncio.Future[Any]") -> None:
    # A loader can outlive every awaiter; mark its error retrieved so it is not logged as lost.
    if not task.cancelled():
        task.exception()


@dataclass
class CacheEntry:
    """Cached result for one key."""

    key: QueryKey
    data: Any
    updated_at: float
    last_accessed: float
    stale: bool = False
    invalidation_count: int = 0

    def is_fresh(self, now: float, stale_time: float) -> bool:
        return not self.stale and (now - self.updated_at) < stale_time


@dataclass
class _InFlight:
    generation: int
    task: "asyncio.Future[Any]"


@dataclass
class _Subscription:
    prefix: QueryKey
    listener: Listener
    active: bool = field(default=True)


class QueryCache:
    """Shared read-only cache of query results.

    Writers never mutate cached data directly; they call :meth:`invalidate`
    and the next :meth:`fetch` reloads. Concurrent fetches of one key share
    a single request, and the most recently issued request for a key is the
    only one allowed to store its result.
    """

    def __init__(
        self,
        stale_time: Optional[float] = None,
        gc_time: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.stale_time = settings.slots_stale_seconds if stale_time is None else stale_time
        self.gc_time = settings.slots_gc_seconds if gc_time is None else gc_time
        self._clock = clock

        self._entries: dict[QueryKey, CacheEntry] = {}
        self._in_flight: dict[QueryKey, _InFlight] = {}
        self._generations: dict[QueryKey, int] = {}
        self._subscriptions: list[_Subscription] = []

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: QueryKey) -> Optional[Any]:
        """Return cached data for *key* without fetching."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        entry.last_accessed = self._clock()
        return entry.data

    def entry(self, key: QueryKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or not entry.is_fresh(self._clock(), self.stale_time)

    async def fetch(self, key: QueryKey, loader: Loader, *, force: bool = False) -> Any:
        """Return fresh data for *key*, loading it if needed.

        Exceptions from *loader* propagate and leave the cache untouched.
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and not force and entry.is_fresh(now, self.stale_time):
            entry.last_accessed = now
            return entry.data

        in_flight = self._in_flight.get(key)
        if in_flight is not None and not force:
            return await asyncio.shield(in_flight.task)

        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        task = asyncio.ensure_future(loader())
        task.add_done_callback(_consume_exception)
        self._in_flight[key] = _InFlight(generation=generation, task=task)

        try:
            data = await asyncio.shield(task)
        finally:
            current = self._in_flight.get(key)
            if current is not None and current.generation == generation:
                del self._in_flight[key]

        if self._generations.get(key) == generation:
            stamp = self._clock()
            previous = self._entries.get(key)
            self._entries[key] = CacheEntry(
                key=key,
                data=data,
                updated_at=stamp,
                last_accessed=stamp,
                invalidation_count=previous.invalidation_count if previous else 0,
            )
        else:
            logger.debug(f"Discarding superseded result for {format_key(key)}")
        return data

    def invalidate(self, prefix: QueryKey) -> int:
        """Mark every entry matching *prefix* stale and notify subscribers.

        In-flight requests for matching keys are superseded so their results
        are not stored. Returns the number of cached entries marked stale.
        """
        matched: list[QueryKey] = []
        for key, entry in self._entries.items():
            if key_matches(key, prefix):
                entry.stale = True
                entry.invalidation_count += 1
                matched.append(key)

        for key in [k for k in self._in_flight if key_matches(k, prefix)]:
            del self._in_flight[key]
            self._generations[key] = self._generations.get(key, 0) + 1

        logger.info(f"Invalidated {len(matched)} cache entries for {format_key(prefix)}")
        get_observability_logger().log_cache_invalidation(format_key(prefix), len(matched))

        for key in matched:
            self._notify(key)
        return len(matched)

    def subscribe(self, prefix: QueryKey, listener: Listener) -> Callable[[], None]:
        """Call *listener* with each invalidated key under *prefix*.

        Returns an unsubscribe function.
        """
        subscription = _Subscription(prefix=prefix, listener=listener)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def _notify(self, key: QueryKey) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active or not key_matches(key, subscription.prefix):
                continue
            try:
                subscription.listener(key)
            except Exception as e:
                logger.warning(f"Cache listener failed for {format_key(key)}: {e}")

    def collect_garbage(self) -> int:
        """Evict entries not accessed within ``gc_time``."""
        cutoff = self._clock() - self.gc_time
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.last_accessed < cutoff and key not in self._in_flight
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} unused cache entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self._in_flight.clear()
        self._generations.clear()
