from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Hashable, Optional, Tuple, Type

from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_RETRY_BASE_SECONDS, DEFAULT_RETRY_MAX_SECONDS

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]
Listener = Callable[[QueryKey], None]


def retry_delay(attempt: int) -> float:
    """Exponential back-off: 1s, 2s, 4s, ... capped at 30s."""
    return min(DEFAULT_RETRY_BASE_SECONDS * (2 ** attempt), DEFAULT_RETRY_MAX_SECONDS)


@dataclass(frozen=True)
class QueryState:
    data: Any = None
    error: Optional[BaseException] = None
    updated_at: Optional[datetime] = None
    is_fetching: bool = False
    is_stale: bool = True
    fetch_count: int = 0


@dataclass
class _Entry:
    data: Any = None
    error: Optional[BaseException] = None
    updated_at: Optional[datetime] = None
    is_stale: bool = True
    fetch_count: int = 0
    in_flight: Optional[Future] = None
    invalidated_in_flight: bool = False
    listeners: list[Listener] = field(default_factory=list)


class QueryCache:
    """Request cache keyed by query key.

    - Concurrent fetches of one key share a single in-flight request.
    - Every completed response replaces the stored one (last completion wins).
    - Invalidating a key while it is being fetched forces one more round trip
      before the in-flight fetch resolves, so callers never get pre-mutation data.
    """

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep, clock: Callable[[], datetime] = now_utc):
        self._lock = threading.Lock()
        self._entries: dict[QueryKey, _Entry] = {}
        self._sleep = sleep
        self._clock = clock

    def _entry(self, key: QueryKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        return entry

    def get(self, key: QueryKey) -> QueryState:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return QueryState()
            return QueryState(
                data=entry.data,
                error=entry.error,
                updated_at=entry.updated_at,
                is_fetching=entry.in_flight is not None,
                is_stale=entry.is_stale,
                fetch_count=entry.fetch_count,
            )

    def get_data(self, key: QueryKey) -> Any:
        return self.get(key).data

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """Call ``listener(key)`` whenever ``key`` is invalidated. Returns an unsubscribe callable."""
        with self._lock:
            self._entry(key).listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                entry = self._entries.get(key)
                if entry and listener in entry.listeners:
                    entry.listeners.remove(listener)

        return unsubscribe

    def invalidate(self, key: QueryKey) -> None:
        with self._lock:
            entry = self._entry(key)
            entry.is_stale = True
            if entry.in_flight is not None:
                entry.invalidated_in_flight = True
            listeners = list(entry.listeners)

        logger.debug("query invalidated", extra={"query_key": list(key)})
        for listener in listeners:
            listener(key)

    def fetch(
        self,
        key: QueryKey,
        loader: Callable[[], Any],
        *,
        retries: int = 0,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    ) -> Any:
        """Run ``loader`` for ``key`` (or join the fetch already in flight) and return its data."""

        with self._lock:
            entry = self._entry(key)
            future = entry.in_flight
            owner = future is None
            if owner:
                future = Future()
                entry.in_flight = future
                entry.invalidated_in_flight = False

        if not owner:
            return future.result()

        try:
            while True:
                data = self._load_with_retries(key, loader, retries=retries, retry_on=retry_on)
                with self._lock:
                    entry.data = data
                    entry.error = None
                    entry.updated_at = self._clock()
                    entry.fetch_count += 1
                    if entry.invalidated_in_flight:
                        entry.invalidated_in_flight = False
                        continue
                    entry.is_stale = False
                    entry.in_flight = None
                break
        except BaseException as e:
            with self._lock:
                entry.error = e
                entry.in_flight = None
            future.set_exception(e)
            raise

        future.set_result(data)
        return data

    def _load_with_retries(
        self,
        key: QueryKey,
        loader: Callable[[], Any],
        *,
        retries: int,
        retry_on: Tuple[Type[BaseException], ...],
    ) -> Any:
        attempt = 0
        while True:
            try:
                return loader()
            except retry_on as e:
                if attempt >= retries:
                    raise
                delay = retry_delay(attempt)
                logger.info(
                    "query failed, retrying",
                    extra={"query_key": list(key), "attempt": attempt + 1, "delay": delay, "error": str(e)},
                )
                attempt += 1
                self._sleep(delay)
