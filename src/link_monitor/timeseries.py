# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import random
from typing import Iterable

# ─── Project imports ───
from .config import Config
from .logger import get_logger
from .models import Fingerprint, PingSample


logger = get_logger("timeseries")

# Per-provider (low, high) ranges for placeholder latencies, in ms
PLACEHOLDER_RANGES = {
    "cloudflare": (15.0, 45.0),
    "google": (20.0, 55.0),
    "facebook": (25.0, 75.0),
    "x": (30.0, 90.0),
}


class TimeSeries:
    """
    Ascending, duplicate-free sequence of PingSamples with a retention cap.

    Invariants:
      - timestamps strictly increase from oldest to newest
      - merges only append samples newer than the newest *real* sample held
      - beyond `capacity`, samples are dropped from the oldest end
      - synthetic samples never outlive the arrival of real data
    """

    def __init__(self, capacity: int, name: str = "series"):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.name = name
        self._samples: list[PingSample] = []

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    @property
    def samples(self) -> tuple[PingSample, ...]:
        return tuple(self._samples)

    @property
    def newest_timestamp(self) -> int | None:
        return self._samples[-1].timestamp if self._samples else None

    @property
    def newest_real_timestamp(self) -> int | None:
        for sample in reversed(self._samples):
            if not sample.synthetic:
                return sample.timestamp
        return None

    @property
    def has_synthetic(self) -> bool:
        return any(s.synthetic for s in self._samples)

    def real_samples(self) -> list[PingSample]:
        return [s for s in self._samples if not s.synthetic]

    def fingerprint(self) -> Fingerprint:
        """Fingerprint of the real samples held (placeholders never count)."""
        return Fingerprint.of(self.real_samples())

    def resize(self, capacity: int) -> None:
        """Change the retention cap, truncating from the oldest end."""
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._truncate()

    def _truncate(self) -> None:
        overflow = len(self._samples) - self.capacity
        if overflow > 0:
            del self._samples[:overflow]

    def append_incoming(self, new_samples: Iterable[PingSample]) -> int:
        """
        Merge a batch of real samples.

        Only samples strictly newer than the newest real timestamp held are
        appended, so replays and out-of-order deliveries are no-ops. Real data
        supersedes any placeholders: all synthetic samples are purged first.

        Returns:
            Number of samples actually added.
        """
        incoming = sorted(
            (s for s in new_samples if not s.synthetic),
            key=lambda s: s.timestamp,
        )
        if not incoming:
            return 0

        if self.has_synthetic:
            purged = sum(1 for s in self._samples if s.synthetic)
            self._samples = [s for s in self._samples if not s.synthetic]
            logger.debug(f"{self.name}: purged {purged} placeholder samples")

        newest = self.newest_real_timestamp
        added = 0
        for sample in incoming:
            if newest is not None and sample.timestamp <= newest:
                continue
            self._samples.append(sample)
            newest = sample.timestamp
            added += 1

        self._truncate()
        return added

    def append_placeholders(self, placeholders: Iterable[PingSample]) -> int:
        """Append synthetic samples newer than anything held."""
        newest = self.newest_timestamp
        added = 0
        for sample in sorted(placeholders, key=lambda s: s.timestamp):
            if not sample.synthetic:
                raise ValueError("placeholders must be flagged synthetic")
            if newest is not None and sample.timestamp <= newest:
                continue
            self._samples.append(sample)
            newest = sample.timestamp
            added += 1

        self._truncate()
        return added

    def window(self, window_seconds: int, reference_time: int | None = None) -> list[PingSample]:
        """
        Samples with timestamp >= reference_time - window_seconds.

        reference_time defaults to the newest sample held, never wall clock,
        so a stalled feed does not open an artificial coverage gap.
        """
        if reference_time is None:
            reference_time = self.newest_timestamp
        if reference_time is None:
            return []

        cutoff = reference_time - window_seconds
        return [s for s in self._samples if s.timestamp >= cutoff]


class TimeSeriesStore:
    """Owns the chart series (selected window) and the 7-day full series."""

    def __init__(
        self,
        chart_capacity: int = Config.TIME_RANGES[Config.DEFAULT_WINDOW],
        retention: int = Config.RETENTION_SAMPLES,
    ):
        self.chart = TimeSeries(chart_capacity, name="chart")
        self.full = TimeSeries(retention, name="full")

    def statistics_source(self) -> TimeSeries:
        """Full series when it holds real data, otherwise the chart series."""
        return self.full if self.full.real_samples() else self.chart


def placeholder_samples(
    after: int | None,
    now: float,
    limit: int = Config.MAX_DATA_POINTS,
    interval: int = Config.SAMPLE_INTERVAL_S,
    rng: random.Random | None = None,
) -> list[PingSample]:
    """
    Synthesize flagged samples on the sampling cadence, ending at `now`.

    Starts one interval after `after` (the newest timestamp shown), and keeps
    at most `limit` of the most recent slots.
    """
    rng = rng or random.Random()
    end = int(now)
    if after is None:
        start = end - (limit - 1) * interval
    else:
        start = after + interval

    slots = list(range(start, end + 1, interval))[-limit:]
    return [
        PingSample(
            timestamp=ts,
            latencies={
                provider: rng.uniform(low, high)
                for provider, (low, high) in PLACEHOLDER_RANGES.items()
            },
            synthetic=True,
        )
        for ts in slots
    ]
