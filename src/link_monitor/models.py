# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import math
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Mapping, NamedTuple

# ─── Project imports ───
from .config import Config
from .errors import MalformedDataError


def _positive(value: Any) -> float | None:
    """Return value as a latency, or None when it is a failed probe."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or value <= 0:
        return None
    return float(value)


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ──────────────────────────────────────────────────────────────
# Latency samples
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PingSample:
    """
    One probe round across all providers.

    A provider entry is "failed" when absent or <= 0. Synthetic samples are
    local placeholders shown while the latency feed is unreachable.
    """
    timestamp: int
    latencies: Mapping[str, float | None] = field(default_factory=dict)
    synthetic: bool = False

    def latency(self, provider: str) -> float | None:
        return _positive(self.latencies.get(provider))

    def positive_latencies(self) -> list[float]:
        return [
            value
            for value in (_positive(v) for v in self.latencies.values())
            if value is not None
        ]

    @property
    def failed(self) -> bool:
        """True when every provider in the round failed."""
        return not self.positive_latencies()

    @classmethod
    def from_payload(
        cls,
        row: Mapping[str, Any],
        providers: tuple[str, ...] = Config.PROVIDERS,
    ) -> PingSample:
        """
        Normalize one backend row `{untimesec, cloudflare, google, ...}`.

        Raises:
            MalformedDataError: row is not a mapping or has no usable timestamp
        """
        if not isinstance(row, Mapping):
            raise MalformedDataError(f"Ping row is not an object: {row!r}")

        ts = row.get("untimesec")
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            raise MalformedDataError(f"Ping row has no untimesec: {row!r}")

        return cls(
            timestamp=int(ts),
            latencies={p: _positive(row.get(p)) for p in providers},
        )


class Fingerprint(NamedTuple):
    """(sample count, newest timestamp) identifying a dataset state."""
    sample_count: int
    newest_timestamp: int

    @classmethod
    def of(cls, samples) -> Fingerprint:
        return cls(len(samples), max((s.timestamp for s in samples), default=0))


# ──────────────────────────────────────────────────────────────
# Link power state
# ──────────────────────────────────────────────────────────────

class LinkState(Enum):
    """
    • ONLINE: link powered and reachable
    • RESTARTING: offline, no fixed return time
    • OFFLINE_TIMED: offline, scheduled to return at `off_until`
    """
    ONLINE = auto()
    RESTARTING = auto()
    OFFLINE_TIMED = auto()

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class LinkPowerReport:
    link_id: str
    online: bool
    off_requested_at: int = 0
    off_until: int = 0

    @property
    def state(self) -> LinkState:
        if self.online:
            return LinkState.ONLINE
        if self.off_until == 0:
            return LinkState.RESTARTING
        return LinkState.OFFLINE_TIMED

    @property
    def tracked_outage(self) -> bool:
        """Offline with a recorded request time, or restarting."""
        return not self.online and (
            self.off_requested_at > 0 or self.off_until == 0
        )

    @classmethod
    def from_payload(cls, link_id: str, data: Mapping[str, Any]) -> LinkPowerReport:
        """
        Normalize `{powerstate|PowerState, uxtimewhenoffrequested, offuntiluxtimesec}`.

        Raises:
            MalformedDataError: no recognizable power state
        """
        if not isinstance(data, Mapping):
            raise MalformedDataError(f"{link_id} state is not an object: {data!r}")

        power = data.get("PowerState", data.get("powerstate"))
        if power in (1, True):
            online = True
        elif power in (0, False):
            online = False
        else:
            raise MalformedDataError(f"{link_id} state has no power state: {data!r}")

        return cls(
            link_id=link_id,
            online=online,
            off_requested_at=max(0, _as_int(data.get("uxtimewhenoffrequested"))),
            off_until=max(0, _as_int(data.get("offuntiluxtimesec"))),
        )


# ──────────────────────────────────────────────────────────────
# Restart schedules
# ──────────────────────────────────────────────────────────────

class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


DAY_NAMES = {
    1: "Sunday",
    2: "Monday",
    3: "Tuesday",
    4: "Wednesday",
    5: "Thursday",
    6: "Friday",
    7: "Saturday",
}

WEEK_NAMES = {1: "first", 2: "second", 3: "third", 4: "fourth"}


@dataclass(frozen=True)
class RestartSchedule:
    """
    Recurring restart policy for one link.

    `frequency` is None when autorestart is on but no schedule was ever saved.
    `day_of_week` uses 1=Sunday .. 7=Saturday.
    """
    enabled: bool
    frequency: Frequency | None = None
    day_of_week: int = 1
    week_of_month: int = 1
    hour: int = 0
    minute: int = 0
    second: int = 0

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour out of range: {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute out of range: {self.minute}")
        if not 0 <= self.second <= 59:
            raise ValueError(f"second out of range: {self.second}")
        if self.frequency in (Frequency.WEEKLY, Frequency.MONTHLY):
            if not 1 <= self.day_of_week <= 7:
                raise ValueError(f"day_of_week out of range: {self.day_of_week}")
        if self.frequency == Frequency.MONTHLY:
            if not 1 <= self.week_of_month <= 4:
                raise ValueError(f"week_of_month out of range: {self.week_of_month}")

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> RestartSchedule:
        """
        Normalize `{autorestart, daily, weekly, monthly, dayinweek, weekinmonth, hour, min, sec}`.

        Raises:
            MalformedDataError: not an object, or values out of range
        """
        if not isinstance(data, Mapping):
            raise MalformedDataError(f"Schedule is not an object: {data!r}")

        if _as_int(data.get("daily")) == 1:
            frequency = Frequency.DAILY
        elif _as_int(data.get("weekly")) == 1:
            frequency = Frequency.WEEKLY
        elif _as_int(data.get("monthly")) == 1:
            frequency = Frequency.MONTHLY
        else:
            frequency = None

        try:
            return cls(
                enabled=_as_int(data.get("autorestart")) == 1,
                frequency=frequency,
                day_of_week=_as_int(data.get("dayinweek"), 1) or 1,
                week_of_month=_as_int(data.get("weekinmonth"), 1) or 1,
                hour=_as_int(data.get("hour")),
                minute=_as_int(data.get("min")),
                second=_as_int(data.get("sec")),
            )
        except ValueError as e:
            raise MalformedDataError(f"Schedule out of range: {e}") from e


# ──────────────────────────────────────────────────────────────
# Stability metrics
# ──────────────────────────────────────────────────────────────

def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


@dataclass(frozen=True)
class StabilityMetrics:
    """
    Connection stability over one window.

    A field of None means "insufficient data" and must never be shown as 0.
    """
    std_dev_ms: float | None
    jitter_ms: float | None
    packet_loss_pct: float | None
    peak_spike_ms: float | None

    @classmethod
    def insufficient(cls) -> StabilityMetrics:
        return cls(None, None, None, None)

    @property
    def sufficient(self) -> bool:
        return self.std_dev_ms is not None

    def rounded(self) -> dict[str, float | int | None]:
        if not self.sufficient:
            return {
                "std_dev_ms": None,
                "jitter_ms": None,
                "packet_loss_pct": None,
                "peak_spike_ms": None,
            }
        return {
            "std_dev_ms": _round_half_up(self.std_dev_ms, 1),
            "jitter_ms": _round_half_up(self.jitter_ms, 1),
            "packet_loss_pct": _round_half_up(self.packet_loss_pct, 2),
            "peak_spike_ms": int(_round_half_up(self.peak_spike_ms)),
        }

    def display(self) -> dict[str, str]:
        r = self.rounded()
        if not self.sufficient:
            return {key: "--" for key in r}
        return {
            "std_dev_ms": f"±{r['std_dev_ms']}ms",
            "jitter_ms": f"±{r['jitter_ms']}ms",
            "packet_loss_pct": f"{r['packet_loss_pct']}%",
            "peak_spike_ms": f"{r['peak_spike_ms']}ms",
        }


# ──────────────────────────────────────────────────────────────
# Network status & activity log
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NetworkStatus:
    active_connection: str = "Unknown"
    public_ip: str = "Unknown"
    location: str = "Unknown"

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> NetworkStatus:
        if not isinstance(data, Mapping):
            raise MalformedDataError(f"Network status is not an object: {data!r}")
        return cls(
            active_connection=str(data.get("active_connection") or "Unknown"),
            public_ip=str(data.get("public_ip") or "Unknown"),
            location=str(data.get("location") or "Unknown"),
        )


@dataclass(frozen=True)
class ActivityEntry:
    timestamp: int
    reason: str
    isp_id: int | None = None
    isp_name: str | None = None
    restart_type: str | None = None
    duration_minutes: int | None = None
    client_ip: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> ActivityEntry:
        if not isinstance(data, Mapping) or "uxtimesec" not in data:
            raise MalformedDataError(f"Activity entry has no uxtimesec: {data!r}")
        isp_id = data.get("isp_id")
        duration = data.get("duration_minutes")
        return cls(
            timestamp=_as_int(data.get("uxtimesec")),
            reason=str(data.get("reason") or ""),
            isp_id=None if isp_id is None else _as_int(isp_id),
            isp_name=data.get("isp_name"),
            restart_type=data.get("restart_type"),
            duration_minutes=None if duration is None else _as_int(duration),
            client_ip=data.get("client_ip"),
        )

    def describe(self) -> tuple[str, str]:
        """
        Return (text, category) for the activity log.

        Restart actions carry isp/restart_type details; anything else is a
        legacy entry classified from its reason text.
        """
        if self.isp_id is not None and self.restart_type:
            return self._describe_action()

        reason = self.reason
        lowered = reason.lower()
        if reason.startswith("[SYSTEM]"):
            category = "system"
        elif reason.startswith("[USER ACTION]"):
            category = "user-action"
        elif "error" in lowered or "failed" in lowered:
            category = "warning"
        elif "completed" in lowered or "online" in lowered:
            category = "success"
        else:
            category = "info"
        return reason, category

    def _describe_action(self) -> tuple[str, str]:
        text = f"{self.isp_name} - "
        category = "restart"

        if self.restart_type == "restart_now":
            text += "Immediate restart"
        elif self.restart_type == "restart_for_duration":
            text += f"Restart for {self.duration_minutes} minutes"
        elif self.restart_type == "schedule_set":
            match = re.search(r"- (.+)$", self.reason)
            text += f"Auto-restart {match.group(1) if match else 'schedule set'}"
            category = "schedule"
        elif self.restart_type == "autorestart_toggle":
            if "disabled" in self.reason:
                text += "Auto-restart disabled"
                category = "warning"
            else:
                match = re.search(r"enabled - (.+)$", self.reason)
                text += f"Auto-restart enabled - {match.group(1) if match else 'enabled'}"
                category = "schedule"

        text += f" (from {self.client_ip})"
        return text, category
