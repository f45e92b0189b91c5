"""
Quota record storage for the fixed-window rate limiter.

The limiter never touches the table directly; it goes through a ``QuotaStore``
so the in-memory table can be replaced by a test double or a shared backend
without changing the decision algorithm.
"""

import threading
from heapq import heappop, heappush
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from shared.logging import get_logger


@dataclass(frozen=True)
class QuotaSnapshot:
    """Point-in-time copy of a client quota record."""

    key: str
    count: int
    reset_time: int


@dataclass
class QuotaRecord:
    """Mutable per-client window counter held by the in-memory store."""

    key: str
    count: int
    reset_time: int
    evicted: bool = False
    expires_at: int = field(default=0, repr=False, compare=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def snapshot(self) -> QuotaSnapshot:
        return QuotaSnapshot(key=self.key, count=self.count, reset_time=self.reset_time)


class QuotaStore(ABC):
    """Table of client quota records keyed by client identity."""

    @abstractmethod
    def hit(self, key: str, now: int, window_ms: int) -> QuotaSnapshot:
        """Record one request for ``key`` and return the updated record.

        Creates the record on first sight, starts a new window when ``now`` is
        past ``reset_time``, and otherwise increments ``count``. Must be atomic
        with respect to other calls for the same key.
        """

    @abstractmethod
    def get(self, key: str) -> Optional[QuotaSnapshot]:
        """Return the current record for ``key`` without mutating it."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Drop the record for ``key``; return whether one existed."""

    @abstractmethod
    def sweep(self, now: int) -> int:
        """Evict records whose window expired before ``now``; return how many."""

    @abstractmethod
    def snapshots(self) -> List[QuotaSnapshot]:
        """Return a copy of every record currently held."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemoryQuotaStore(QuotaStore):
    """Process-local quota table.

    The table lock guards insertion and eviction only. Each record carries its
    own lock, so updates for one client are serialized while different clients
    proceed in parallel. No lock is held across an ``await``, which keeps the
    store safe to call from the event loop and from worker threads alike.

    Expiry is tracked in a min-heap of ``(expires_at, key)`` entries, one live
    entry per record. Entries go stale when a record starts a new window; a
    stale entry is re-pushed with the record's current ``reset_time`` when it
    reaches the top. Eviction therefore only touches entries that are due and
    never scans the whole table.
    """

    def __init__(self, max_tracked_keys: Optional[int] = None):
        self.max_tracked_keys = max_tracked_keys
        self.logger = get_logger("gateway.quota_store")
        self._records: Dict[str, QuotaRecord] = {}
        self._expiry_heap: List[Tuple[int, str]] = []
        self._table_lock = threading.Lock()

    def _get_or_create(self, key: str, now: int, window_ms: int):
        with self._table_lock:
            record = self._records.get(key)
            if record is not None:
                return record, None

            if self.max_tracked_keys and len(self._records) >= self.max_tracked_keys:
                self._evict_expired_locked(now)

            record = QuotaRecord(key=key, count=1, reset_time=now + window_ms)
            record.expires_at = record.reset_time
            self._records[key] = record
            heappush(self._expiry_heap, (record.expires_at, key))
            return record, record.snapshot()

    def hit(self, key: str, now: int, window_ms: int) -> QuotaSnapshot:
        while True:
            record, created = self._get_or_create(key, now, window_ms)
            if created is not None:
                return created

            with record.lock:
                if record.evicted:
                    # Lost a race with the sweeper; the next lookup creates a fresh record
                    continue

                if now > record.reset_time:
                    record.count = 1
                    record.reset_time = now + window_ms
                else:
                    record.count += 1
                return record.snapshot()

    def get(self, key: str) -> Optional[QuotaSnapshot]:
        with self._table_lock:
            record = self._records.get(key)
        if record is None:
            return None
        with record.lock:
            return record.snapshot()

    def delete(self, key: str) -> bool:
        with self._table_lock:
            record = self._records.pop(key, None)
        if record is None:
            return False
        with record.lock:
            record.evicted = True
        return True

    def sweep(self, now: int) -> int:
        with self._table_lock:
            return self._evict_expired_locked(now)

    def _evict_expired_locked(self, now: int) -> int:
        evicted = 0
        heap = self._expiry_heap
        while heap and now > heap[0][0]:
            expires_at, key = heappop(heap)
            record = self._records.get(key)
            if record is None or record.expires_at != expires_at:
                # Entry left behind by a deleted or recreated record
                continue

            with record.lock:
                if now > record.reset_time:
                    record.evicted = True
                    del self._records[key]
                    evicted += 1
                else:
                    record.expires_at = record.reset_time
                    heappush(heap, (record.expires_at, key))

        if evicted:
            self.logger.debug("Evicted expired quota records", evicted=evicted, remaining=len(self._records))
        return evicted

    def snapshots(self) -> List[QuotaSnapshot]:
        with self._table_lock:
            records = list(self._records.values())
        result = []
        for record in records:
            with record.lock:
                result.append(record.snapshot())
        return result

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._records)
