from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from errors import TransportError
from fakes import ScriptedLookup, match
from lookup_cache import CachedLookup, build_lookup
from models import SearchStrategy

PIKACHU = SearchStrategy.number_lookup("25")


def test_second_execute_is_served_from_cache() -> None:
    inner = ScriptedLookup({"number:25": [match("a")]})
    cache = CachedLookup(inner, ttl_seconds=60)

    first = cache.execute(PIKACHU)
    second = cache.execute(PIKACHU)

    assert [m.id for m in first] == [m.id for m in second] == ["a"]
    assert inner.executed == ["number:25"]
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1
    assert cache.stats()["hit_rate"] == 50.0


def test_empty_results_are_cached() -> None:
    inner = ScriptedLookup()
    cache = CachedLookup(inner, ttl_seconds=60)

    cache.execute(PIKACHU)
    cache.execute(PIKACHU)

    assert inner.executed == ["number:25"]


def test_errors_are_not_cached() -> None:
    inner = ScriptedLookup(default=TransportError("down"))
    cache = CachedLookup(inner, ttl_seconds=60)

    for _ in range(2):
        with pytest.raises(TransportError):
            cache.execute(PIKACHU)

    assert len(inner.executed) == 2
    assert cache.stats()["size"] == 0


def test_zero_ttl_bypasses_cache() -> None:
    inner = ScriptedLookup()
    cache = CachedLookup(inner, ttl_seconds=0)

    cache.execute(PIKACHU)
    cache.execute(PIKACHU)

    assert len(inner.executed) == 2


def test_expired_entries_miss_and_purge() -> None:
    cache = CachedLookup(ScriptedLookup(), ttl_seconds=60)
    cache.put(PIKACHU, [match("a")])
    cache.put(SearchStrategy.number_lookup("26"), [])

    for entry in cache._cache.values():
        entry.expires_at = 0

    assert cache.purge_expired() == 2
    assert cache.get(PIKACHU) is None


def test_stats_stay_consistent_under_concurrent_use() -> None:
    cache = CachedLookup(ScriptedLookup(), ttl_seconds=60)
    strategies = [SearchStrategy.number_lookup(str(n)) for n in range(5)]
    snapshots = []

    def worker() -> None:
        for i in range(50):
            cache.execute(strategies[i % len(strategies)])
            snapshots.append(cache.stats())

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [pool.submit(worker) for _ in range(8)]
    for future in futures:
        future.result()

    final = cache.stats()
    assert final["hits"] + final["misses"] == 400
    assert final["size"] == 5
    for snap in snapshots:
        total = snap["hits"] + snap["misses"]
        assert snap["hit_rate"] == round(snap["hits"] / total * 100, 1)

    cache.reset_stats()
    assert cache.stats()["hit_rate"] is None


def test_invalidate_and_clear() -> None:
    cache = CachedLookup(ScriptedLookup(), ttl_seconds=60)
    cache.put(PIKACHU, [match("a")])

    assert cache.invalidate(PIKACHU)
    assert not cache.invalidate(PIKACHU)

    cache.put(PIKACHU, [match("a")])
    assert cache.clear() == 1
    assert cache.stats()["size"] == 0


def test_delegates_warning_and_ranking_flag() -> None:
    inner = ScriptedLookup(warning="reduced", ranks_results=False)
    cache = CachedLookup(inner, ttl_seconds=60)

    assert cache.warning == "reduced"
    assert cache.ranks_results is False


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValueError):
        build_lookup("carrier-pigeon")
