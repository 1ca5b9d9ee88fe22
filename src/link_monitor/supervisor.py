# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import math
import random
from dataclasses import replace
from typing import Any, Callable, Optional

# ─── Project imports ───
from .api_client import LatencyBatch, MonitorClient
from .cache import StabilityCache
from .config import Config, window_minutes, window_rows
from .errors import MalformedDataError, TransportError
from .link_fsm import LinkStateReconciler, LinkView
from .logger import get_logger
from .metrics import (
    WindowAverage,
    pooled_average,
    signal_strength,
    stability_metrics,
    windowed_average,
)
from .models import (
    ActivityEntry,
    Fingerprint,
    LinkPowerReport,
    NetworkStatus,
    RestartSchedule,
    StabilityMetrics,
)
from .scheduler import Scheduler, Task
from .telemetry import tlog
from .time_service import TimeService
from .timeseries import TimeSeriesStore, placeholder_samples


RenderCallback = Callable[[dict[str, LinkView]], Any]


class PollSupervisor:
    """
    Owns the poll cadence, the connection flag and the per-link save latch.

    Every fetch runs through `_attempt`, which has exactly two continuations:
    success applies the normalized result, failure degrades state. No error
    escapes a poll, so one failing feed never stalls the others.

    Invariants:
      - while a link is latched (a settings save is in flight), incoming link
        state and settings for that link are not applied
      - the latch is released after a settle delay whether the save
        succeeded or failed
      - a successful link-state poll restores connectivity and forces a full
        re-render of every link
    """

    def __init__(
        self,
        client: MonitorClient,
        scheduler: Scheduler,
        store: Optional[TimeSeriesStore] = None,
        reconciler: Optional[LinkStateReconciler] = None,
        cache: Optional[StabilityCache] = None,
        time_service: Optional[TimeService] = None,
        on_render: Optional[RenderCallback] = None,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.scheduler = scheduler
        self.clock = scheduler.clock
        self.store = store or TimeSeriesStore()
        self.reconciler = reconciler or LinkStateReconciler()
        self.cache = cache or StabilityCache()
        self.time_service = time_service or TimeService()
        self.on_render = on_render
        self.rng = rng or random.Random()
        self.logger = get_logger("supervisor")

        self.connected = False
        self.retry_task: Optional[Task] = None
        self.tasks: dict[str, Task] = {}

        self.chart_window = Config.DEFAULT_WINDOW
        self.stats_window = Config.DEFAULT_WINDOW

        self.network_status = NetworkStatus()
        self.activity_log: list[ActivityEntry] = []
        self._newest_activity = 0

        self.suspended: dict[str, bool] = {
            link_id: False for link_id in self.reconciler.states
        }

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    def _polls(self) -> dict[str, tuple[float, Callable[[], Any]]]:
        return {
            "latency": (Config.Poll.LATENCY, self.poll_latency),
            "full_range": (Config.Poll.FULL_RANGE, self.poll_full_range),
            "link_states": (Config.Poll.LINK_STATES, self.poll_link_states),
            "network_status": (Config.Poll.NETWORK_STATUS, self.poll_network_status),
            "settings": (Config.Poll.SETTINGS, self.poll_settings),
            "activity_log": (Config.Poll.ACTIVITY_LOG, self.poll_activity_log),
            "clock_tick": (Config.Poll.CLOCK_TICK, self.render),
        }

    def fetch_initial(self) -> None:
        """Run every feed once, before periodic polling starts."""
        self.logger.info("📡 Initial fetch of all feeds")
        for name, (_, poll) in self._polls().items():
            if name != "clock_tick":
                poll()
        self.render()

    def start(self, initial_delay: float = Config.Poll.INITIAL_DELAY) -> None:
        """Register the periodic polls; the first run of each follows `initial_delay`."""
        for name, (period, poll) in self._polls().items():
            self.tasks[name] = self.scheduler.every(period, poll, name=name, delay=initial_delay)
        self.logger.info(f"⏱️ Periodic polling starts in {initial_delay}s")

    def stop(self) -> None:
        for task in self.tasks.values():
            task.cancel()
        self.tasks.clear()
        self._cancel_retry()

    # ──────────────────────────────────────────────────────────────
    # Fallible operations
    # ──────────────────────────────────────────────────────────────

    def _attempt(
        self,
        name: str,
        operation: Callable[[], Any],
        on_success: Callable[[Any], Any],
        on_failure: Optional[Callable[[Exception], Any]] = None,
    ) -> bool:
        """
        Run one fetch and route the outcome.

        TransportError marks the backend disconnected. MalformedDataError is
        logged and the cycle produces no update.
        """
        try:
            result = operation()
        except TransportError as e:
            self.logger.warning(f"{name}: {e}")
            self._mark_disconnected(name)
            if on_failure is not None:
                on_failure(e)
            return False
        except MalformedDataError as e:
            self.logger.warning(f"{name}: malformed response, no update this cycle ({e})")
            return False

        on_success(result)
        return True

    # ──────────────────────────────────────────────────────────────
    # Polls
    # ──────────────────────────────────────────────────────────────

    def poll_latency(self) -> bool:
        rows = window_rows(self.chart_window)
        return self._attempt(
            "latency",
            lambda: self.client.fetch_latency_batch(rows),
            self._merge_chart,
            self._fill_placeholders,
        )

    def _merge_chart(self, batch: LatencyBatch) -> None:
        added = self.store.chart.append_incoming(batch.samples)
        self.reconciler.apply_restart_times(batch.restart_times)
        if added:
            self.logger.debug(f"Chart: +{added} samples ({len(self.store.chart)} held)")
        self.render()

    def _fill_placeholders(self, _error: Exception) -> None:
        placeholders = placeholder_samples(
            self.store.chart.newest_timestamp,
            self.clock.time(),
            rng=self.rng,
        )
        added = self.store.chart.append_placeholders(placeholders)
        if added:
            self.logger.debug(f"Chart: +{added} placeholder samples")

    def poll_full_range(self) -> bool:
        return self._attempt(
            "full_range",
            lambda: self.client.fetch_latency_batch(Config.RETENTION_SAMPLES),
            self._merge_full,
        )

    def _merge_full(self, batch: LatencyBatch) -> None:
        added = self.store.full.append_incoming(batch.samples)
        self.reconciler.apply_restart_times(batch.restart_times)
        if added:
            self.logger.debug(f"Full range: +{added} samples ({len(self.store.full)} held)")

    def poll_link_states(self) -> bool:
        return self._attempt("link_states", self.client.fetch_link_states, self._apply_link_states)

    def _apply_link_states(self, reports: dict[str, LinkPowerReport]) -> None:
        accepted = {}
        for link_id, report in reports.items():
            if self.suspended.get(link_id):
                self.logger.debug(f"{link_id}: save in flight, skipping link state")
                continue
            accepted[link_id] = report

        self.reconciler.apply_reports(accepted)
        self._mark_connected()
        self.render()

    def poll_settings(self) -> bool:
        return self._attempt("settings", self.client.fetch_autorestart_settings, self._apply_settings)

    def _apply_settings(self, settings: dict[str, RestartSchedule]) -> None:
        for link_id, schedule in settings.items():
            if self.suspended.get(link_id):
                self.logger.debug(f"{link_id}: save in flight, skipping settings")
                continue
            self.reconciler.apply_schedule(link_id, schedule)

    def poll_network_status(self) -> bool:
        return self._attempt("network_status", self.client.fetch_network_status, self._apply_network_status)

    def _apply_network_status(self, status: NetworkStatus) -> None:
        if status != self.network_status:
            tlog(
                self.logger,
                "🌐",
                "NETWORK",
                "STATUS",
                primary=status.active_connection,
                meta=f"ip={status.public_ip} | location={status.location}",
            )
        self.network_status = status

    def poll_activity_log(self) -> bool:
        return self._attempt("activity_log", self.client.fetch_activity_log, self._apply_activity_log)

    def _apply_activity_log(self, entries: list[ActivityEntry]) -> None:
        for entry in sorted(entries, key=lambda e: e.timestamp):
            if entry.timestamp > self._newest_activity:
                text, category = entry.describe()
                self.logger.info(
                    f"📝 {self.time_service.clock_string(entry.timestamp)} [{category}] {text}"
                )
                self._newest_activity = entry.timestamp
        self.activity_log = entries

    # ──────────────────────────────────────────────────────────────
    # Connectivity
    # ──────────────────────────────────────────────────────────────

    def _mark_disconnected(self, source: str) -> None:
        was_connected = self.connected
        self.connected = False
        self.reconciler.set_connected(False)
        if was_connected:
            tlog(self.logger, "🔴", "BACKEND", "DISCONNECTED", meta=f"source={source}")
            self.render()
        self._start_retry()

    def _mark_connected(self) -> None:
        self._cancel_retry()
        if self.connected:
            return
        self.connected = True
        self.reconciler.set_connected(True)
        tlog(self.logger, "💚", "BACKEND", "CONNECTED")

    def _start_retry(self) -> None:
        if self.retry_task is not None and self.retry_task.active:
            return
        self.retry_task = self.scheduler.every(
            Config.Poll.CONNECTION_RETRY,
            self.poll_link_states,
            name="connection_retry",
        )

    def _cancel_retry(self) -> None:
        if self.retry_task is not None:
            self.retry_task.cancel()
            self.retry_task = None

    # ──────────────────────────────────────────────────────────────
    # Save latch
    # ──────────────────────────────────────────────────────────────

    def _suspend(self, link_id: str) -> None:
        self.suspended[link_id] = True
        tlog(self.logger, "🔒", "LATCH", "SAVE IN FLIGHT", primary=link_id)

    def _release(self, link_id: str) -> None:
        self.suspended[link_id] = False
        tlog(self.logger, "🔓", "LATCH", "RELEASED", primary=link_id)

    def _release_later(self, link_id: str, delay: float, then: Optional[Callable[[], Any]] = None) -> None:
        def release():
            self._release(link_id)
            if then is not None:
                then()
        self.scheduler.call_later(delay, release, name=f"release_{link_id}")

    # ──────────────────────────────────────────────────────────────
    # Commands
    # ──────────────────────────────────────────────────────────────

    def save_schedule(self, link_id: str, schedule: RestartSchedule) -> bool:
        """
        Push a restart schedule for one link.

        On success the schedule is applied locally at once (saving enables
        autorestart). Either way the latch is released after the settle delay,
        including when the client rejects the schedule outright.
        """
        self._require_link(link_id)
        self._suspend(link_id)
        try:
            self.client.send_schedule_update(link_id, schedule)
        except TransportError as e:
            self.logger.error(f"❌ {link_id}: schedule save failed: {e}")
            return False
        finally:
            self._release_later(link_id, Config.Settle.SCHEDULE_SAVE)

        self.reconciler.apply_schedule(link_id, replace(schedule, enabled=True))
        self.logger.info(f"💾 {link_id}: schedule saved")
        self.scheduler.call_later(
            Config.Settle.COMMAND_REFRESH, self.poll_activity_log, name="refresh_activity_log"
        )
        self.render()
        return True

    def set_autorestart(self, link_id: str, enabled: bool) -> bool:
        """
        Toggle autorestart for one link.

        The local schedule keeps its previous value on failure. Settings are
        re-polled once the latch is released so the backend has the last word.
        """
        state = self._require_link(link_id)
        self._suspend(link_id)
        try:
            self.client.send_autorestart_toggle(link_id, enabled)
        except TransportError as e:
            self.logger.error(f"❌ {link_id}: autorestart toggle failed: {e}")
            return False
        finally:
            self._release_later(link_id, Config.Settle.AUTORESTART_TOGGLE, then=self.poll_settings)

        previous = state.schedule
        updated = (
            replace(previous, enabled=enabled)
            if previous is not None
            else RestartSchedule(enabled=enabled)
        )
        self.reconciler.apply_schedule(link_id, updated)
        self.logger.info(f"🔁 {link_id}: autorestart {'enabled' if enabled else 'disabled'}")
        self.render()
        return True

    def request_restart(self, link_id: str, mode: str = "now", duration_minutes: Optional[int] = None) -> bool:
        """Restart a link now or for a duration, then refresh state after a beat."""
        try:
            self.client.send_restart_command(link_id, mode, duration_minutes)
        except TransportError as e:
            self.logger.error(f"❌ {link_id}: restart command failed: {e}")
            return False

        self.logger.info(f"🔌 {link_id}: restart requested (mode={mode})")

        def refresh():
            self.poll_link_states()
            self.poll_activity_log()

        self.scheduler.call_later(Config.Settle.COMMAND_REFRESH, refresh, name="refresh_after_restart")
        return True

    def _require_link(self, link_id: str):
        state = self.reconciler.states.get(link_id)
        if state is None:
            raise ValueError(f"Unknown link: {link_id!r}")
        return state

    # ──────────────────────────────────────────────────────────────
    # Derived views
    # ──────────────────────────────────────────────────────────────

    def select_chart_window(self, window_id: str) -> None:
        """Switch the chart window; the chart keeps at most that many rows."""
        self.chart_window = window_id
        self.store.chart.resize(window_rows(window_id))

    def select_stats_window(self, window_id: str) -> StabilityMetrics:
        self.stats_window = window_id
        return self.current_stability()

    def current_stability(self, window_id: Optional[str] = None) -> StabilityMetrics:
        """Stability metrics for a window, memoized on the dataset fingerprint."""
        window_id = window_id or self.stats_window
        samples = self.store.statistics_source().real_samples()
        return self.cache.get_or_compute(
            window_id,
            Fingerprint.of(samples),
            lambda: stability_metrics(samples, window_minutes(window_id)),
        )

    def latency_averages(self) -> dict[str, WindowAverage]:
        samples = self.store.statistics_source().real_samples()
        return {
            period: windowed_average(samples, window_minutes(period))
            for period in Config.AVERAGE_PERIODS
        }

    def signal(self) -> tuple[int, str]:
        """Signal bars from the pooled average over the selected stats window."""
        samples = self.store.statistics_source().real_samples()
        average = pooled_average(samples, window_minutes(self.stats_window))
        if average is None:
            return signal_strength(None)
        # Round half up to whole ms before banding
        return signal_strength(math.floor(average + 0.5))

    def link_views(self) -> dict[str, LinkView]:
        return self.reconciler.views(self.clock.time())

    def render(self) -> None:
        """Push a full snapshot of every link to the render callback."""
        if self.on_render is not None:
            self.on_render(self.link_views())
