"""Reassembly of Telegram albums.

Telegram delivers an album as one update per item, all sharing a
``media_group_id`` and with no marker for the last item. Items are buffered
per group and the group is treated as complete once no new item has arrived
for ``debounce_s``. Groups that are never consumed are evicted ``ttl_s``
after their first item, or after ``HARD_TTL_FACTOR * ttl_s`` even while
items keep arriving.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

import anyio

from .logging import get_logger

if TYPE_CHECKING:
    from anyio.abc import TaskGroup
else:
    TaskGroup = object

logger = get_logger(__name__)

HARD_TTL_FACTOR = 2

T = TypeVar("T")


@dataclass(slots=True)
class MediaGroupEntry(Generic[T]):
    group_id: str
    first_seen: float
    last_seen: float
    items: list[T] = field(default_factory=list)
    token: int = 0


class MediaGroupAggregator(Generic[T]):
    """Thread-safe buffer of album items keyed by group id.

    Every method runs under one short lock and never awaits, so appends and
    consumption for a group are atomic with respect to each other while
    unrelated groups never wait on I/O.
    """

    def __init__(
        self,
        *,
        debounce_s: float = 0.5,
        ttl_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if debounce_s <= 0:
            raise ValueError("debounce_s must be positive")
        if ttl_s <= debounce_s:
            raise ValueError("ttl_s must be greater than debounce_s")
        self._debounce_s = debounce_s
        self._ttl_s = ttl_s
        self._clock = clock
        self._entries: dict[str, MediaGroupEntry[T]] = {}
        self._lock = threading.Lock()

    @property
    def debounce_s(self) -> float:
        return self._debounce_s

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, group_id: object) -> bool:
        with self._lock:
            return group_id in self._entries

    def add_media_to_group(self, group_id: str, item: T) -> int:
        """Append ``item`` and return the group's new token.

        The token changes on every append; a completion check holding an
        older token knows more items arrived after it was scheduled.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(group_id)
            if entry is not None and self._is_expired_locked(entry, now):
                self._evict_locked(entry, reason="expired_on_add")
                entry = None
            if entry is None:
                entry = MediaGroupEntry(
                    group_id=group_id, first_seen=now, last_seen=now
                )
                self._entries[group_id] = entry
            entry.items.append(item)
            entry.last_seen = now
            entry.token += 1
            return entry.token

    def get_media_by_group_id(self, group_id: str) -> tuple[T, ...] | None:
        """Peek at the buffered items; the entry stays in place."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(group_id)
            if entry is None:
                return None
            if self._is_expired_locked(entry, now):
                self._evict_locked(entry, reason="expired_on_lookup")
                return None
            return tuple(entry.items)

    def take_if_current(self, group_id: str, token: int) -> tuple[T, ...] | None:
        """Remove and return the group if nothing was appended since ``token``.

        Returns ``None`` when the group is gone or a newer append superseded
        this token; in the latter case the newer completion check owns it.
        """
        with self._lock:
            entry = self._entries.get(group_id)
            if entry is None or entry.token != token:
                return None
            del self._entries[group_id]
            return tuple(entry.items)

    def evict_expired(self) -> list[str]:
        now = self._clock()
        with self._lock:
            expired = [
                entry
                for entry in self._entries.values()
                if self._is_expired_locked(entry, now)
            ]
            for entry in expired:
                self._evict_locked(entry, reason="expired")
        return [entry.group_id for entry in expired]

    def _is_expired_locked(self, entry: MediaGroupEntry[T], now: float) -> bool:
        age = now - entry.first_seen
        if age >= self._ttl_s * HARD_TTL_FACTOR:
            return True
        # a group still receiving items is kept past ttl_s, up to the hard cap
        if now - entry.last_seen < self._debounce_s:
            return False
        return age >= self._ttl_s

    def _evict_locked(self, entry: MediaGroupEntry[T], *, reason: str) -> None:
        self._entries.pop(entry.group_id, None)
        logger.warning(
            "media_group.evicted",
            group_id=entry.group_id,
            reason=reason,
            dropped_items=len(entry.items),
        )


class MediaGroupDebouncer(Generic[T]):
    """Schedules completion of buffered groups.

    Each group has at most one pending completion timer. An append cancels
    the pending timer and arms a new one, so a group completes
    ``debounce_s`` after its last item and ``on_complete`` runs once with
    every item in arrival order.
    """

    def __init__(
        self,
        *,
        task_group: TaskGroup,
        aggregator: MediaGroupAggregator[T],
        on_complete: Callable[[str, tuple[T, ...]], Awaitable[None]],
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._task_group = task_group
        self._aggregator = aggregator
        self._on_complete = on_complete
        self._sleep = sleep
        self._timers: dict[str, anyio.CancelScope] = {}

    @property
    def aggregator(self) -> MediaGroupAggregator[T]:
        return self._aggregator

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def add(self, group_id: str, item: T) -> None:
        token = self._aggregator.add_media_to_group(group_id, item)
        previous = self._timers.pop(group_id, None)
        if previous is not None:
            previous.cancel()
        scope = anyio.CancelScope()
        self._timers[group_id] = scope
        self._task_group.start_soon(self._flush, group_id, token, scope)

    async def _flush(self, group_id: str, token: int, scope: anyio.CancelScope) -> None:
        with scope:
            await self._sleep(self._aggregator.debounce_s)
        if scope.cancel_called:
            return
        if self._timers.get(group_id) is scope:
            del self._timers[group_id]
        items = self._aggregator.take_if_current(group_id, token)
        if items is None:
            return
        logger.debug("media_group.completed", group_id=group_id, items=len(items))
        try:
            await self._on_complete(group_id, items)
        except Exception:
            logger.exception("media_group.on_complete.failed", group_id=group_id)

    def sweep(self) -> list[str]:
        evicted = self._aggregator.evict_expired()
        for group_id in evicted:
            scope = self._timers.pop(group_id, None)
            if scope is not None:
                scope.cancel()
        return evicted

    async def run_sweeper(self, interval_s: float) -> None:
        while True:
            await self._sleep(interval_s)
            self.sweep()
