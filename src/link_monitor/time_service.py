# --- Standard library imports ---
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from datetime import datetime, tzinfo

# --- Project imports ---
from .config import Config
from .logger import get_logger


logger = get_logger("time_service")

class TimeService:
    """
    Timezone-aware conversions between unix seconds and local wall time.

    - TZ resolved once at construction (falls back to UTC)
    - Provides:
        * to_local()
        * clock_string()
        * full_string()
    """

    def __init__(self, tz_name: str | None = None):
        tz_name = tz_name or Config.TZ
        try:
            self.tz: tzinfo = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown time zone {tz_name!r}; using UTC")
            self.tz = ZoneInfo("UTC")

    def to_local(self, unix_seconds: float) -> datetime:
        return datetime.fromtimestamp(unix_seconds, self.tz)

    def clock_string(self, unix_seconds: float) -> str:
        """Return 'HH:MM:SS' local time (activity log column)."""
        return self.to_local(unix_seconds).strftime("%H:%M:%S")

    def full_string(self, unix_seconds: float) -> str:
        """Return 'MM/DD/YY @ HH:MM:SS TZ' (activity log tooltip)."""
        return self.to_local(unix_seconds).strftime("%m/%d/%y @ %H:%M:%S %Z")
