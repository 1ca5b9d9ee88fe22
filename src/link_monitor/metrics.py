# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import math
from dataclasses import dataclass, field
from statistics import fmean, pstdev
from typing import Sequence

# ─── Project imports ───
from .config import Config
from .models import PingSample, StabilityMetrics
from .utils import format_period


# ─── Policy constants ───
COVERAGE_THRESHOLD = 0.8


def _in_window(
    samples: Sequence[PingSample],
    window_seconds: int,
    reference_time: int | None,
) -> list[PingSample]:
    if not samples:
        return []
    if reference_time is None:
        reference_time = max(s.timestamp for s in samples)
    cutoff = reference_time - window_seconds
    return sorted(
        (s for s in samples if s.timestamp >= cutoff),
        key=lambda s: s.timestamp,
    )


def _providers(samples: Sequence[PingSample]) -> list[str]:
    seen: dict[str, None] = {}
    for sample in samples:
        for provider in sample.latencies:
            seen.setdefault(provider, None)
    return list(seen)


# ──────────────────────────────────────────────────────────────
# Coverage-aware averages
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WindowAverage:
    average_ms: float
    coverage_pct: int
    valid: bool
    sample_count: int
    required_samples: int
    provider_averages: dict[str, float] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return self.average_ms > 0

    def describe(self, window_minutes: int) -> str:
        period = format_period(window_minutes)
        if not self.has_data:
            return f"No data available for the last {period}"
        if not self.valid:
            return f"Only {self.coverage_pct}% of pings available over the last {period}"
        return f"{self.coverage_pct}% data coverage over the last {period}"


def windowed_average(
    samples: Sequence[PingSample],
    window_minutes: int,
    reference_time: int | None = None,
    interval: int = Config.SAMPLE_INTERVAL_S,
) -> WindowAverage:
    """
    Mean latency over a trailing window, with data-sufficiency checks.

    Each provider is averaged over its positive latencies; the overall
    average is the mean of providers that have at least one positive sample
    (providers with no data are excluded, not counted as zero).

    The result is `valid` once the window holds at least 80% of the samples
    expected at the sampling cadence. `coverage_pct` is reported regardless.
    """
    window_seconds = window_minutes * 60
    required = math.ceil(window_seconds / interval)
    min_required = math.floor(required * COVERAGE_THRESHOLD)

    relevant = _in_window(samples, window_seconds, reference_time)
    if not relevant:
        return WindowAverage(0.0, 0, False, 0, required)

    provider_averages = {}
    for provider in _providers(relevant):
        values = [
            v for v in (s.latency(provider) for s in relevant) if v is not None
        ]
        if values:
            provider_averages[provider] = fmean(values)

    overall = fmean(provider_averages.values()) if provider_averages else 0.0
    coverage = math.floor(len(relevant) / required * 100 + 0.5) if required else 0

    return WindowAverage(
        average_ms=overall,
        coverage_pct=coverage,
        valid=len(relevant) >= min_required,
        sample_count=len(relevant),
        required_samples=required,
        provider_averages=provider_averages,
    )


def pooled_average(
    samples: Sequence[PingSample],
    window_minutes: int,
    reference_time: int | None = None,
) -> float | None:
    """Mean of every positive latency in the window, across all providers."""
    relevant = _in_window(samples, window_minutes * 60, reference_time)
    pooled = [v for s in relevant for v in s.positive_latencies()]
    return fmean(pooled) if pooled else None


# ──────────────────────────────────────────────────────────────
# Stability metrics
# ──────────────────────────────────────────────────────────────

def stability_metrics(
    samples: Sequence[PingSample],
    window_minutes: int,
    reference_time: int | None = None,
    interval: int = Config.SAMPLE_INTERVAL_S,
) -> StabilityMetrics:
    """
    Standard deviation, jitter, packet loss and peak spike over a window.

    - std dev:  population std dev of all positive latencies, pooled
    - jitter:   mean |Δ| between consecutive samples, per provider, pooled
    - loss:     (failed + missing segments) / expected segments, in [0, 100]
    - peak:     highest positive latency

    An empty or all-failed window yields StabilityMetrics.insufficient().
    """
    window_seconds = window_minutes * 60
    relevant = _in_window(samples, window_seconds, reference_time)

    pooled = [v for s in relevant for v in s.positive_latencies()]
    if not pooled:
        return StabilityMetrics.insufficient()

    # ─── Jitter ───
    deltas = []
    for provider in _providers(relevant):
        for prev, curr in zip(relevant, relevant[1:]):
            a, b = prev.latency(provider), curr.latency(provider)
            if a is not None and b is not None:
                deltas.append(abs(b - a))
    jitter = fmean(deltas) if deltas else 0.0

    # ─── Packet loss ───
    expected = window_seconds // interval
    failed = sum(1 for s in relevant if s.failed)
    missing = max(0, expected - len(relevant))
    if expected > 0:
        loss = min(100.0, max(0.0, (failed + missing) / expected * 100))
    else:
        loss = 0.0

    return StabilityMetrics(
        std_dev_ms=pstdev(pooled),
        jitter_ms=jitter,
        packet_loss_pct=loss,
        peak_spike_ms=max(pooled),
    )


# ──────────────────────────────────────────────────────────────
# Classification helpers
# ──────────────────────────────────────────────────────────────

# metric -> (stable upper bound, moderate upper bound)
STABILITY_THRESHOLDS = {
    "std_dev_ms": (5, 15),
    "jitter_ms": (5, 20),
    "packet_loss_pct": (0.1, 1),
    "peak_spike_ms": (100, 300),
}


def stability_class(metric: str, value: float | None) -> str:
    """Classify a rounded metric as stable / moderate / unstable / unknown."""
    bounds = STABILITY_THRESHOLDS.get(metric)
    if bounds is None or value is None:
        return "unknown"

    stable, moderate = bounds
    if value <= stable:
        return "stable"
    if value <= moderate:
        return "moderate"
    return "unstable"


def signal_strength(average_ms: float | None) -> tuple[int, str]:
    """Map an average latency to (bars, level) for the signal indicator."""
    if average_ms is None:
        return 0, "none"
    if average_ms <= 30:
        return 5, "active"
    if average_ms <= 50:
        return 4, "active"
    if average_ms <= 70:
        return 3, "weak"
    if average_ms <= 100:
        return 2, "poor"
    return 1, "poor"
