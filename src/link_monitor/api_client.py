# --- Standard library imports ---
import json
from dataclasses import dataclass, field
from typing import Any, Optional

# --- Third-party imports ---
import requests

# --- Project imports ---
from .config import Config
from .logger import get_logger
from .errors import MalformedDataError, TransportError
from .models import (
    ActivityEntry,
    Frequency,
    LinkPowerReport,
    NetworkStatus,
    PingSample,
    RestartSchedule,
)


@dataclass(frozen=True)
class LatencyBatch:
    """Normalized latency feed: ascending samples plus per-link restart times."""
    samples: list[PingSample] = field(default_factory=list)
    restart_times: dict[str, int] = field(default_factory=dict)


class MonitorClient:
    """
    Handles all communication with the link monitor backend.

    Every response is normalized into the canonical model types before it is
    returned; callers never see wire field-name variants.

    Raises:
        TransportError: network failure, timeout or non-2xx status
        MalformedDataError: body is not JSON or lacks its expected shape
    """

    def __init__(
        self,
        base_url: str = Config.API_URL,
        timeout: float = Config.API_TIMEOUT,
        session: Optional[requests.Session] = None,
        links: dict[str, int] = Config.LINKS,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.links = dict(links)
        self.logger = get_logger("api_client")

    # ──────────────────────────────────────────────────────────────
    # HTTP helpers
    # ──────────────────────────────────────────────────────────────

    def _isp_id(self, link_id: str) -> int:
        try:
            return self.links[link_id]
        except KeyError:
            raise ValueError(f"Unknown link: {link_id!r}") from None

    def _send(self, method: str, params: dict | None = None, payload: dict | None = None) -> requests.Response:
        try:
            resp = self.session.request(
                method,
                self.base_url,
                params=params,
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(
                f"{method} {self.base_url} failed ({e.__class__.__name__}: {e})"
            ) from e
        return resp

    def _json(self, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedDataError(
                f"Response from {resp.url} was not valid JSON"
            ) from e

    def _get(self, params: dict) -> Any:
        self.logger.debug(f"GET {self.base_url} {params}")
        return self._json(self._send("GET", params=params))

    def _post(self, payload: dict) -> str:
        self.logger.debug(f"POST {self.base_url} {json.dumps(payload)}")
        return self._send("POST", payload=payload).text

    # ──────────────────────────────────────────────────────────────
    # Feeds
    # ──────────────────────────────────────────────────────────────

    def fetch_latency_batch(self, row_count: int) -> LatencyBatch:
        """
        Request the newest `row_count` probe rows.

        Accepts both the wrapped `{ping_data, restart_times}` shape and the
        older bare array. Rows without a timestamp are dropped.
        """
        self.logger.debug(f"POST {self.base_url} Rows={row_count}")
        data = self._json(self._send("POST", payload={"Rows": row_count}))

        if isinstance(data, dict) and isinstance(data.get("ping_data"), list):
            rows = data["ping_data"]
            raw_times = data.get("restart_times") or {}
        elif isinstance(data, list):
            rows, raw_times = data, {}
        else:
            raise MalformedDataError(f"Latency response has no ping_data: {str(data)[:200]}")

        samples = []
        for row in rows:
            try:
                samples.append(PingSample.from_payload(row))
            except MalformedDataError as e:
                self.logger.warning(f"Dropping ping row: {e}")
        samples.sort(key=lambda s: s.timestamp)

        restart_times = {}
        if isinstance(raw_times, dict):
            for link_id in self.links:
                value = raw_times.get(link_id)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    restart_times[link_id] = int(value)

        return LatencyBatch(samples=samples, restart_times=restart_times)

    def fetch_link_states(self) -> dict[str, LinkPowerReport]:
        """Current power report per link; malformed or missing links are omitted."""
        data = self._get({"ispstates": 1})
        if not isinstance(data, dict):
            raise MalformedDataError(f"Link states response is not an object: {data!r}")

        reports = {}
        for link_id in self.links:
            if link_id not in data:
                self.logger.warning(f"No {link_id} link state received")
                continue
            try:
                reports[link_id] = LinkPowerReport.from_payload(link_id, data[link_id])
            except MalformedDataError as e:
                self.logger.warning(f"Ignoring link state: {e}")
        return reports

    def fetch_network_status(self) -> NetworkStatus:
        return NetworkStatus.from_payload(self._get({"networkstatus": 1}))

    def fetch_activity_log(self, limit: int = Config.ACTIVITY_LOG_LIMIT) -> list[ActivityEntry]:
        data = self._get({"logs": limit})
        if not isinstance(data, list):
            raise MalformedDataError(f"Activity log response is not a list: {data!r}")

        entries = []
        for item in data:
            try:
                entries.append(ActivityEntry.from_payload(item))
            except MalformedDataError as e:
                self.logger.warning(f"Dropping activity entry: {e}")
        return entries

    def fetch_autorestart_settings(self) -> dict[str, RestartSchedule]:
        data = self._get({"pagestate": 1})
        if not isinstance(data, dict):
            raise MalformedDataError(f"Autorestart response is not an object: {data!r}")

        settings = {}
        for link_id in self.links:
            if link_id not in data:
                continue
            try:
                settings[link_id] = RestartSchedule.from_payload(data[link_id])
            except MalformedDataError as e:
                self.logger.warning(f"Ignoring {link_id} autorestart settings: {e}")
        return settings

    # ──────────────────────────────────────────────────────────────
    # Commands
    # ──────────────────────────────────────────────────────────────

    def send_restart_command(self, link_id: str, mode: str, duration_minutes: Optional[int] = None) -> str:
        """Restart a link now, or take it down for `duration_minutes`."""
        isp_id = self._isp_id(link_id)

        if mode == "now":
            payload = {"restartnow": 1, "isp_id": isp_id}
        elif mode == "timed":
            if not duration_minutes or duration_minutes <= 0:
                raise ValueError("timed restart requires a positive duration")
            payload = {"restartfor": int(duration_minutes), "isp_id": isp_id}
        else:
            raise ValueError(f"Unknown restart mode: {mode!r}")

        return self._post(payload)

    def send_schedule_update(self, link_id: str, schedule: RestartSchedule) -> str:
        isp_id = self._isp_id(link_id)
        at = [schedule.hour, schedule.minute, schedule.second]

        if schedule.frequency == Frequency.DAILY:
            payload = {"daily": at, "isp_id": isp_id}
        elif schedule.frequency == Frequency.WEEKLY:
            payload = {"weekly": [schedule.day_of_week, *at], "isp_id": isp_id}
        elif schedule.frequency == Frequency.MONTHLY:
            payload = {
                "monthly": [schedule.week_of_month, schedule.day_of_week, *at],
                "isp_id": isp_id,
            }
        else:
            raise ValueError("schedule has no frequency")

        return self._post(payload)

    def send_autorestart_toggle(self, link_id: str, enabled: bool) -> str:
        return self._post({"autorestart": bool(enabled), "isp_id": self._isp_id(link_id)})
