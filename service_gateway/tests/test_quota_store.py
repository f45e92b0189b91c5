"""
Unit tests for the in-memory quota store.
"""

import heapq

import pytest

from service_gateway.app.ratelimit import store as store_module
from service_gateway.app.ratelimit.store import InMemoryQuotaStore, QuotaSnapshot, QuotaStore


class TestInMemoryQuotaStore:
    """Test cases for InMemoryQuotaStore."""

    @pytest.fixture
    def store(self):
        return InMemoryQuotaStore()

    def test_is_a_quota_store(self, store):
        assert isinstance(store, QuotaStore)

    def test_hit_creates_record(self, store):
        snapshot = store.hit("k", now=1000, window_ms=500)

        assert snapshot == QuotaSnapshot(key="k", count=1, reset_time=1500)
        assert len(store) == 1

    def test_hit_increments_within_window(self, store):
        store.hit("k", now=1000, window_ms=500)
        store.hit("k", now=1200, window_ms=500)
        snapshot = store.hit("k", now=1500, window_ms=500)

        assert snapshot.count == 3
        assert snapshot.reset_time == 1500

    def test_hit_after_expiry_starts_new_window(self, store):
        store.hit("k", now=1000, window_ms=500)
        store.hit("k", now=1200, window_ms=500)
        snapshot = store.hit("k", now=1501, window_ms=500)

        assert snapshot == QuotaSnapshot(key="k", count=1, reset_time=2001)

    def test_get_returns_copy(self, store):
        store.hit("k", now=1000, window_ms=500)
        snapshot = store.get("k")
        store.hit("k", now=1100, window_ms=500)

        assert snapshot.count == 1
        assert store.get("k").count == 2
        assert store.get("missing") is None

    def test_delete(self, store):
        store.hit("k", now=1000, window_ms=500)

        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.get("k") is None
        assert len(store) == 0

    def test_sweep_only_removes_expired(self, store):
        store.hit("old", now=1000, window_ms=500)
        store.hit("edge", now=1100, window_ms=500)
        store.hit("new", now=1400, window_ms=500)

        evicted = store.sweep(now=1600)

        assert evicted == 1
        assert {s.key for s in store.snapshots()} == {"edge", "new"}

    def test_sweep_keeps_record_at_exact_reset_time(self, store):
        store.hit("k", now=1000, window_ms=500)

        assert store.sweep(now=1500) == 0
        assert store.get("k") is not None

    def test_eviction_matches_reset_semantics(self, store):
        store.hit("k", now=1000, window_ms=500)
        store.hit("k", now=1100, window_ms=500)
        store.sweep(now=2000)

        snapshot = store.hit("k", now=2000, window_ms=500)

        assert snapshot == QuotaSnapshot(key="k", count=1, reset_time=2500)

    def test_hit_on_evicted_record_uses_fresh_record(self, store):
        store.hit("k", now=1000, window_ms=500)
        stale = store._records["k"]
        store.delete("k")

        snapshot = store.hit("k", now=1100, window_ms=500)

        assert stale.evicted is True
        assert snapshot.count == 1
        assert store._records["k"] is not stale

    def test_tracked_key_bound_sweeps_expired_records(self):
        store = InMemoryQuotaStore(max_tracked_keys=2)
        store.hit("a", now=1000, window_ms=100)
        store.hit("b", now=1000, window_ms=100)

        store.hit("c", now=1200, window_ms=100)

        assert {s.key for s in store.snapshots()} == {"c"}

    def test_tracked_key_bound_never_evicts_active_records(self):
        store = InMemoryQuotaStore(max_tracked_keys=2)
        store.hit("a", now=1000, window_ms=100)
        store.hit("b", now=1000, window_ms=100)

        store.hit("c", now=1050, window_ms=100)

        assert len(store) == 3

    def test_saturated_table_inserts_without_scanning_active_records(self, monkeypatch):
        store = InMemoryQuotaStore(max_tracked_keys=1000)
        for i in range(1000):
            store.hit(f"active-{i}", now=1000, window_ms=60_000)

        pops = []

        def counting_heappop(heap):
            pops.append(heap[0])
            return heapq.heappop(heap)

        monkeypatch.setattr(store_module, "heappop", counting_heappop)
        for i in range(100):
            store.hit(f"late-{i}", now=2000, window_ms=60_000)

        assert pops == []
        assert len(store) == 1100

    def test_saturated_insert_evicts_only_due_records(self, monkeypatch):
        store = InMemoryQuotaStore(max_tracked_keys=3)
        store.hit("old", now=1000, window_ms=100)
        store.hit("active-1", now=1000, window_ms=5000)
        store.hit("active-2", now=1000, window_ms=5000)

        pops = []

        def counting_heappop(heap):
            pops.append(heap[0])
            return heapq.heappop(heap)

        monkeypatch.setattr(store_module, "heappop", counting_heappop)
        store.hit("new", now=1200, window_ms=5000)

        assert pops == [(1100, "old")]
        assert {s.key for s in store.snapshots()} == {"active-1", "active-2", "new"}

    def test_sweep_reschedules_record_that_started_new_window(self, store):
        store.hit("k", now=1000, window_ms=500)
        store.hit("k", now=1600, window_ms=500)

        assert store.sweep(now=1700) == 0
        assert store._expiry_heap == [(2100, "k")]

        assert store.sweep(now=2101) == 1
        assert store.get("k") is None

    def test_sweep_ignores_entries_of_deleted_records(self, store):
        store.hit("k", now=1000, window_ms=500)
        store.delete("k")
        store.hit("k", now=1200, window_ms=500)

        assert store.sweep(now=1600) == 0
        assert store.get("k").reset_time == 1700
        assert store.sweep(now=1701) == 1
