# --- Standard library imports ---
import sys
import time
import logging

# --- Project imports ---
from .api_client import MonitorClient
from .cache import StabilityCache
from .config import Config
from .link_fsm import LINK_STATE_EMOJI, LinkStateReconciler
from .logger import get_logger, setup_logging
from .scheduler import Scheduler, SystemClock
from .supervisor import PollSupervisor
from .telemetry import tlog
from .time_service import TimeService
from .timeseries import TimeSeriesStore


def link_status_logger(logger: logging.Logger):
    """
    Render sink that logs one status line per link whenever its view changes.

    Clock values tick every second, so only the state, clock kind, staleness
    and schedule are compared.
    """
    last_seen = {}

    def render(views):
        for link_id, view in views.items():
            summary = (view.status_text, view.clock_kind, view.stale, view.schedule_text)
            if last_seen.get(link_id) == summary:
                continue
            last_seen[link_id] = summary

            meta = f"{view.clock_label.lower()}={view.clock_text} | next_restart={view.countdown_text}"
            if view.stale:
                meta += " | stale"
            tlog(
                logger,
                LINK_STATE_EMOJI.get(view.state, "⚪"),
                "LINK",
                view.status_text,
                primary=link_id,
                meta=meta,
            )

    return render


def main():
    """
    Entry point for the dual-link monitor.

    Configures logging, runs one fetch of every feed, then polls forever.
    """

    # Setup logging policy
    setup_logging(level=getattr(logging, Config.LOG_LEVEL, logging.INFO))
    logger = get_logger("main")
    logger.info("🚀 Starting dual-link telemetry monitor")
    logger.debug(f"Python version: {sys.version}")

    time_service = TimeService()
    logger.info(f"🕒 Local time {time_service.full_string(time.time())}")
    scheduler = Scheduler(SystemClock())

    supervisor = PollSupervisor(
        client=MonitorClient(),
        scheduler=scheduler,
        store=TimeSeriesStore(),
        reconciler=LinkStateReconciler(tz=time_service.tz),
        cache=StabilityCache(),
        time_service=time_service,
        on_render=link_status_logger(get_logger("links")),
    )

    supervisor.fetch_initial()
    supervisor.start()

    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logger.info("🛑 Stopping monitor")
        supervisor.stop()

if __name__ == "__main__":
    main()
