# Overview: Retry and single-writer helpers for read-compute-write sequences against the row store.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager, nullcontext

from ..validation import UpstreamUnavailable


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute an idempotent store read with retry on UpstreamUnavailable.

    Never wrap appends/updates/deletes: the store has no idempotency keys,
    so a retried append that actually landed the first time duplicates a row.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except UpstreamUnavailable as exc:
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class KeyedLocks:
    """
    In-process mutex per key (table name, date, phone).

    The single-writer serialization point for read-compute-write sequences.
    Correct only while exactly one service instance fronts the store. An entry
    lives only while some caller holds or waits on it, so per-phone and
    per-date keys do not pile up.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._guard = threading.Lock()
        # key -> [lock, holders and waiters]
        self._locks: dict[str, list] = {}

    @contextmanager
    def _held(self, key: str):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def hold(self, key: str):
        if not self.enabled:
            return nullcontext()
        return self._held(key)
