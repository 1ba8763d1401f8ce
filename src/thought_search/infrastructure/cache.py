"""EvaluationCache -- memoized value scores.

Thread-safe key-value store mapping ``problem::thought text`` to the mean
score an evaluator computed for it.  Entries optionally expire after a
time-to-live.  The cache is injected into evaluators rather than held as
module state, so each run (or each test) can own an isolated instance.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    score: float
    stored_at: float


class EvaluationCache:
    """Thread-safe score memoization with an optional TTL.

    Parameters
    ----------
    ttl_seconds:
        Lifetime of an entry; ``None`` keeps entries until cleared.
    clock:
        Zero-argument callable returning seconds, ``time.monotonic`` by
        default.  Tests inject a fake clock to exercise expiry.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(problem: str, text: str) -> str:
        return f"{problem}::{text}"

    @property
    def ttl_seconds(self) -> float | None:
        return self._ttl

    def get(self, key: str) -> float | None:
        """Return the cached score, or ``None`` when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._ttl is not None and self._clock() - entry.stored_at > self._ttl:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.score

    def put(self, key: str, score: float) -> None:
        """Store *score* under *key*; a later write for the same key wins."""
        with self._lock:
            self._entries[key] = CacheEntry(score=float(score), stored_at=self._clock())

    def lookup(self, problem: str, text: str) -> float | None:
        return self.get(self.make_key(problem, text))

    def store(self, problem: str, text: str, score: float) -> None:
        self.put(self.make_key(problem, text), score)

    def clear(self) -> None:
        """Remove every entry and reset the statistics."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __repr__(self) -> str:
        return f"EvaluationCache(size={len(self)}, ttl_seconds={self._ttl})"
