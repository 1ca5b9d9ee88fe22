# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Any, Mapping, Optional

# ─── Project imports ───
from .config import Config
from .logger import get_logger
from .telemetry import tlog
from .models import LinkPowerReport, LinkState, RestartSchedule
from .scheduling_policy import describe, next_occurrence
from .utils import (
    UNKNOWN_CLOCK,
    format_countdown,
    format_duration_compact,
    format_uptime,
)


LINK_STATE_EMOJI = {
    LinkState.ONLINE: "💚",
    LinkState.RESTARTING: "🟡",
    LinkState.OFFLINE_TIMED: "🔴",
}


@dataclass
class LinkRuntimeState:
    """
    Everything known about one link.

    `pending_fresh_restart_time` is set when a tracked outage ends and cleared
    by the next nonzero restart timestamp; while set, uptime is unknown.
    """
    link_id: str
    last_report: Optional[LinkPowerReport] = None
    last_restart_timestamp: int = 0
    pending_fresh_restart_time: bool = False
    connected: bool = False
    schedule: Optional[RestartSchedule] = None


@dataclass(frozen=True)
class LinkView:
    """Display-ready snapshot of one link at a given instant."""
    link_id: str
    state: Optional[LinkState]
    status_text: str
    clock_label: str            # "Uptime" | "Downtime"
    clock_text: str
    clock_kind: str             # "uptime" | "downtime" | "unknown"
    countdown_text: str
    countdown_warning: bool
    schedule_text: str
    next_restart: Optional[int]
    stale: bool


class LinkStateReconciler:
    """
    Per-link power-state machine.

    Combines polled power reports, restart timestamps, the local clock and
    the restart schedule into uptime / downtime / countdown views.

    Invariants:
      - only an offline → online transition out of a *tracked* outage
        (off requested, or restarting) arms the fresh-restart-time guard
      - uptime is never derived from a restart timestamp older than the
        outage that just ended
      - downtime counts from the off request until a report says online
      - malformed or missing input leaves state unchanged; nothing raises
      - disconnection marks views stale but clocks keep ticking
    """

    def __init__(self, links: Mapping[str, int] = Config.LINKS, tz: tzinfo = timezone.utc):
        self.tz = tz
        self.states: dict[str, LinkRuntimeState] = {
            link_id: LinkRuntimeState(link_id) for link_id in links
        }
        self.logger = get_logger("link_fsm")

    def _state(self, link_id: str) -> Optional[LinkRuntimeState]:
        state = self.states.get(link_id)
        if state is None:
            self.logger.warning(f"Ignoring update for unknown link {link_id!r}")
        return state

    # ──────────────────────────────────────────────────────────────
    # Inputs
    # ──────────────────────────────────────────────────────────────

    def apply_report(self, report: Optional[LinkPowerReport]) -> bool:
        """
        Apply one power report.

        Returns:
            True if the report differs from the previous one.
        """
        if not isinstance(report, LinkPowerReport):
            return False

        state = self._state(report.link_id)
        if state is None:
            return False

        previous = state.last_report
        if previous == report:
            return False

        if (
            previous is not None
            and not previous.online
            and report.online
            and previous.tracked_outage
        ):
            state.pending_fresh_restart_time = True
            tlog(
                self.logger,
                "🟡",
                "LINK",
                "AWAIT RESTART TIME",
                primary=report.link_id,
                meta="back online after tracked outage",
            )

        if previous is None or previous.state != report.state:
            tlog(
                self.logger,
                LINK_STATE_EMOJI[report.state],
                "LINK",
                str(report.state),
                primary=report.link_id,
                meta=f"from={previous.state if previous else 'UNKNOWN'}",
            )

        state.last_report = report
        return True

    def apply_reports(self, reports: Mapping[str, Optional[LinkPowerReport]]) -> list[str]:
        """Apply a batch of reports; returns ids of links whose report changed."""
        return [
            link_id
            for link_id, report in reports.items()
            if self.apply_report(report)
        ]

    def apply_restart_times(self, restart_times: Mapping[str, Any]) -> None:
        """
        Adopt restart timestamps from the latency feed.

        A value > 0 replaces the link's restart timestamp and clears a pending
        fresh-restart-time guard. An explicit 0 means the backend no longer
        knows the restart time, so uptime goes back to unknown. Missing,
        negative or non-numeric values are ignored.
        """
        if not isinstance(restart_times, Mapping):
            return

        for link_id, raw in restart_times.items():
            state = self.states.get(link_id)
            if state is None:
                continue
            if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw < 0:
                continue
            if raw == 0:
                state.last_restart_timestamp = 0
                continue

            timestamp = int(raw)
            if state.pending_fresh_restart_time:
                state.pending_fresh_restart_time = False
                tlog(
                    self.logger,
                    "💚",
                    "LINK",
                    "RESTART TIME FRESH",
                    primary=link_id,
                    meta=f"restarted_at={timestamp}",
                )
            state.last_restart_timestamp = timestamp

    def apply_schedule(self, link_id: str, schedule: Optional[RestartSchedule]) -> None:
        state = self._state(link_id)
        if state is None:
            return
        state.schedule = schedule

    def set_connected(self, connected: bool) -> bool:
        """Set the supervisor flag on every link; returns True if it changed."""
        changed = False
        for state in self.states.values():
            if state.connected != connected:
                state.connected = connected
                changed = True
        return changed

    # ──────────────────────────────────────────────────────────────
    # Derived values
    # ──────────────────────────────────────────────────────────────

    def downtime_seconds(self, link_id: str, now: float) -> Optional[int]:
        """Seconds since the off request while a tracked downtime lasts."""
        report = self.states[link_id].last_report
        if report is None or report.online or report.off_requested_at <= 0:
            return None
        return max(0, int(now) - report.off_requested_at)

    def uptime_seconds(self, link_id: str, now: float) -> Optional[int]:
        """Seconds since the last restart, or None when unknown."""
        state = self.states[link_id]
        if state.pending_fresh_restart_time or state.last_restart_timestamp == 0:
            return None
        return max(0, int(now) - state.last_restart_timestamp)

    def _status_text(self, state: LinkRuntimeState) -> str:
        report = state.last_report
        if not state.connected:
            return "ONLINE?"
        if report is None:
            return "UNKNOWN"

        match report.state:
            case LinkState.ONLINE:
                return "ONLINE"
            case LinkState.RESTARTING:
                return "RESTARTING"
            case _:
                if report.off_requested_at > 0:
                    compact = format_duration_compact(
                        report.off_until - report.off_requested_at
                    )
                    if compact:
                        return f"OFFLINE ({compact})"
                return "OFFLINE"

    def view(self, link_id: str, now: float) -> LinkView:
        state = self.states[link_id]
        report = state.last_report

        downtime = self.downtime_seconds(link_id, now)
        if downtime is not None:
            label, text, kind = "Downtime", format_uptime(downtime), "downtime"
        else:
            uptime = self.uptime_seconds(link_id, now)
            if uptime is None:
                label, text, kind = "Uptime", UNKNOWN_CLOCK, "unknown"
            else:
                label, text, kind = "Uptime", format_uptime(uptime), "uptime"

        next_restart = next_occurrence(state.schedule, now, self.tz)
        countdown_text, warning = format_countdown(
            None if next_restart is None else next_restart - now
        )

        return LinkView(
            link_id=link_id,
            state=report.state if report else None,
            status_text=self._status_text(state),
            clock_label=label,
            clock_text=text,
            clock_kind=kind,
            countdown_text=countdown_text,
            countdown_warning=warning,
            schedule_text=describe(state.schedule),
            next_restart=next_restart,
            stale=not state.connected,
        )

    def views(self, now: float) -> dict[str, LinkView]:
        return {link_id: self.view(link_id, now) for link_id in self.states}
