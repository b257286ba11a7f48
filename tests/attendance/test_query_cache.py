import threading
import time

import pytest

from school_attendance.attendance.query_cache import QueryCache, retry_delay
from school_attendance.core.exceptions import TransportError, ValidationError

KEY = ("self-attendance-status", "u-1", "s-1")


def test_concurrent_fetches_share_one_request():
    cache = QueryCache()
    calls = []
    results = []

    def join():
        results.append(cache.fetch(KEY, lambda: "late"))

    def loader():
        calls.append(1)
        other = threading.Thread(target=join)
        other.start()
        time.sleep(0.1)
        return "snapshot"

    assert cache.fetch(KEY, loader) == "snapshot"
    time.sleep(0.05)

    assert len(calls) == 1
    assert results == ["snapshot"]


def test_invalidate_during_fetch_forces_another_round_trip():
    cache = QueryCache()
    responses = iter(["before-mutation", "after-mutation"])
    calls = []

    def loader():
        calls.append(1)
        if len(calls) == 1:
            cache.invalidate(KEY)
        return next(responses)

    assert cache.fetch(KEY, loader) == "after-mutation"
    assert len(calls) == 2
    state = cache.get(KEY)
    assert state.data == "after-mutation"
    assert not state.is_stale
    assert not state.is_fetching


def test_last_completed_response_wins():
    cache = QueryCache()
    cache.fetch(KEY, lambda: "first")
    cache.fetch(KEY, lambda: "second")

    assert cache.get_data(KEY) == "second"
    assert cache.get(KEY).fetch_count == 2


def test_retries_with_backoff_then_succeeds():
    sleeps = []
    cache = QueryCache(sleep=sleeps.append)
    failures = [TransportError("down"), TransportError("down")]

    def loader():
        if failures:
            raise failures.pop(0)
        return "ok"

    assert cache.fetch(KEY, loader, retries=2, retry_on=(TransportError,)) == "ok"
    assert sleeps == [1.0, 2.0]


def test_gives_up_after_retries_and_keeps_last_data():
    cache = QueryCache(sleep=lambda _s: None)
    cache.fetch(KEY, lambda: "good")
    calls = []

    def loader():
        calls.append(1)
        raise TransportError("down")

    with pytest.raises(TransportError):
        cache.fetch(KEY, loader, retries=2, retry_on=(TransportError,))

    assert len(calls) == 3
    state = cache.get(KEY)
    assert state.data == "good"
    assert isinstance(state.error, TransportError)


def test_errors_outside_retry_on_are_not_retried():
    cache = QueryCache(sleep=lambda _s: None)
    calls = []

    def loader():
        calls.append(1)
        raise ValidationError("bad payload")

    with pytest.raises(ValidationError):
        cache.fetch(KEY, loader, retries=2, retry_on=(TransportError,))
    assert len(calls) == 1


def test_subscribers_are_notified_until_unsubscribed():
    cache = QueryCache()
    seen = []
    unsubscribe = cache.subscribe(KEY, seen.append)

    cache.invalidate(KEY)
    unsubscribe()
    cache.invalidate(KEY)

    assert seen == [KEY]
    assert cache.get(KEY).is_stale


def test_retry_delay_is_capped():
    assert retry_delay(0) == 1.0
    assert retry_delay(3) == 8.0
    assert retry_delay(10) == 30.0
