# ─── Standard library imports ───
from collections import deque
from typing import Callable, Optional

# ─── Project imports ───
from .config import Config
from .logger import get_logger
from .models import Fingerprint, StabilityMetrics


CacheKey = tuple[str, int, int]   # (window id, sample count, newest timestamp)


class StabilityCache:
    """
    Memoization table for stability metrics.

    Keyed on (window id, sample count, newest timestamp): the fingerprint of
    the dataset that produced a result, not a point in time. A hit is
    authoritative and never recomputed.

    Invariants:
      - at most `max_entries` entries
      - eviction is insertion-order FIFO (reads do not refresh an entry)
    """

    def __init__(self, max_entries: int = Config.STABILITY_CACHE_SIZE):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._order: deque[CacheKey] = deque()
        self._entries: dict[CacheKey, StabilityMetrics] = {}
        self.logger = get_logger("cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    @staticmethod
    def key(window_id: str, fingerprint: Fingerprint) -> CacheKey:
        return (window_id, fingerprint.sample_count, fingerprint.newest_timestamp)

    def keys(self) -> list[CacheKey]:
        """Keys in insertion order, oldest first."""
        return list(self._order)

    def get(self, window_id: str, fingerprint: Fingerprint) -> Optional[StabilityMetrics]:
        return self._entries.get(self.key(window_id, fingerprint))

    def put(self, window_id: str, fingerprint: Fingerprint, metrics: StabilityMetrics) -> None:
        """
        Store a result. Replacing an existing key keeps its queue position;
        a new key beyond the bound evicts the oldest inserted entry.
        """
        key = self.key(window_id, fingerprint)
        if key in self._entries:
            self._entries[key] = metrics
            return

        self._order.append(key)
        self._entries[key] = metrics

        while len(self._order) > self.max_entries:
            evicted = self._order.popleft()
            del self._entries[evicted]
            self.logger.debug(f"Evicted stability entry {evicted}")

    def get_or_compute(
        self,
        window_id: str,
        fingerprint: Fingerprint,
        compute: Callable[[], StabilityMetrics],
    ) -> StabilityMetrics:
        cached = self.get(window_id, fingerprint)
        if cached is not None:
            return cached

        metrics = compute()
        self.put(window_id, fingerprint, metrics)
        return metrics

    def clear(self) -> None:
        self._order.clear()
        self._entries.clear()
