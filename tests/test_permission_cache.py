"""Tests for PermissionCache: TTL, invalidation, sweeping, concurrency."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

import pytest

from access_control.permission_cache import PermissionCache
from tests.conftest import FakeClock, make_rule


def test_get_on_empty_cache_is_miss(cache):
    assert cache.get("u1") is None


def test_put_then_get_returns_rules(cache):
    rules = [make_rule("create", "Post"), make_rule("read", "User", inverted=True)]
    cache.put("u1", rules)
    assert cache.get("u1") == rules


def test_get_preserves_order(cache):
    rules = [make_rule("delete", "Post", rule_id=f"r{i}") for i in range(5)]
    cache.put("u1", rules)
    assert [r.id for r in cache.get("u1")] == ["r0", "r1", "r2", "r3", "r4"]


def test_entry_valid_until_ttl_elapses(cache, clock):
    rules = [make_rule("create", "Post")]
    cache.put("u1", rules)

    clock.advance(minutes=4, seconds=59)
    assert cache.get("u1") == rules

    clock.advance(seconds=1)
    assert cache.get("u1") is None


def test_put_records_timestamps(cache, clock):
    entry = cache.put("u1", [])
    assert entry.cached_at == clock.now
    assert entry.expires_at == clock.now + timedelta(minutes=5)


def test_put_replaces_previous_entry(cache, clock):
    cache.put("u1", [make_rule("create", "Post")])
    clock.advance(minutes=4)
    replacement = [make_rule("update", "Post")]
    cache.put("u1", replacement)

    clock.advance(minutes=2)
    assert cache.get("u1") == replacement


def test_caller_mutation_does_not_leak_into_cache(cache):
    rules = [make_rule("create", "Post")]
    cache.put("u1", rules)
    rules.append(make_rule("delete", "Post"))
    cache.get("u1").append(make_rule("update", "Post"))

    assert len(cache.get("u1")) == 1


def test_invalidate_removes_entry_before_ttl(cache):
    cache.put("u1", [make_rule("create", "Post")])
    assert cache.invalidate("u1") is True
    assert cache.get("u1") is None


def test_invalidate_unknown_user_is_noop(cache):
    cache.put("u1", [])
    assert cache.invalidate("nobody") is False
    assert cache.get("u1") == []


def test_invalidate_all_returns_count(cache):
    for uid in ("u1", "u2", "u3"):
        cache.put(uid, [])
    assert cache.invalidate_all() == 3
    assert len(cache) == 0
    assert cache.invalidate_all() == 0


def test_sweep_removes_only_expired(cache, clock):
    cache.put("old", [])
    clock.advance(minutes=3)
    cache.put("fresh", [])
    clock.advance(minutes=2)

    removed = cache.sweep_expired()

    assert removed == 1
    assert cache.get("old") is None
    assert cache.get("fresh") == []
    assert len(cache) == 1


def test_sweep_accepts_explicit_time(cache, clock):
    cache.put("u1", [])
    assert cache.sweep_expired(clock.now + timedelta(minutes=1)) == 0
    assert cache.sweep_expired(clock.now + timedelta(minutes=5)) == 1


def test_put_with_current_version_stores(cache):
    version = cache.version("u1")
    assert cache.put("u1", [], version=version) is not None
    assert cache.get("u1") == []


def test_put_with_version_older_than_invalidate_is_dropped(cache):
    version = cache.version("u1")
    cache.invalidate("u1")

    assert cache.put("u1", [make_rule("create", "Post")], version=version) is None
    assert cache.get("u1") is None
    assert cache.put("u1", [], version=cache.version("u1")) is not None


def test_put_with_version_older_than_invalidate_all_is_dropped(cache):
    version = cache.version("u1")
    cache.invalidate_all()
    assert cache.put("u1", [], version=version) is None


def test_invalidating_another_user_keeps_version(cache):
    version = cache.version("u1")
    cache.invalidate("u2")
    assert cache.put("u1", [], version=version) is not None


def test_stats(cache):
    cache.put("u1", [])
    cache.put("u2", [])
    assert cache.stats() == {"size": 2, "ttl_ms": 300000, "sweep_interval_ms": 600000}


@pytest.mark.parametrize("ttl, interval", [
    (timedelta(0), timedelta(minutes=1)),
    (timedelta(minutes=1), timedelta(seconds=-1)),
])
def test_rejects_non_positive_durations(ttl, interval):
    with pytest.raises(ValueError):
        PermissionCache(ttl=ttl, sweep_interval=interval)


def test_background_sweeper_removes_expired_entries():
    clock = FakeClock()
    cache = PermissionCache(
        ttl=timedelta(minutes=5),
        sweep_interval=timedelta(milliseconds=10),
        clock=clock,
    )
    cache.put("u1", [])
    clock.advance(minutes=6)

    with cache:
        assert cache.sweeper_running
        deadline = time.monotonic() + 2
        while len(cache) and time.monotonic() < deadline:
            time.sleep(0.01)

    assert len(cache) == 0
    assert not cache.sweeper_running


def test_start_sweeper_twice_keeps_one_thread(cache):
    cache.start_sweeper()
    first = cache._sweeper
    cache.start_sweeper()
    assert cache._sweeper is first
    cache.stop_sweeper()


def test_concurrent_access_keeps_entries_whole():
    cache = PermissionCache(ttl=timedelta(minutes=5), sweep_interval=timedelta(minutes=10))
    errors = []

    def worker(n: int):
        try:
            uid = f"user-{n % 4}"
            for i in range(200):
                rules = [make_rule("create", "Post", rule_id=f"{n}-{i}-{j}") for j in range(3)]
                cache.put(uid, rules)
                got = cache.get(uid)
                if got is not None:
                    assert len(got) == 3
                    assert len({r.id.rsplit("-", 1)[0] for r in got}) == 1
                if i % 50 == 0:
                    cache.invalidate(uid)
                    cache.sweep_expired()
        except Exception as e:  # pragma: no cover - surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(cache) <= 4
