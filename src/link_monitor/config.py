# --- Standard library imports ---
import os

# --- Third-party imports ---
from dotenv import load_dotenv


# Load .env once
load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


class Config:
    """Centralized config for the monitor's endpoints, cadences and windows"""

    # --- Backend ---
    API_URL = os.getenv("API_URL", "http://127.0.0.1:8081/api/ping-data")
    API_TIMEOUT = _env_int("API_TIMEOUT", 8)   # seconds

    # --- Local clock ---
    TZ = os.getenv("TZ", "UTC")

    # --- Observability Policy ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_TIMING = os.getenv("LOG_TIMING", "false").lower() == "true"

    # --- Sampling Constants (NOT user configurable) ---
    SAMPLE_INTERVAL_S = 15      # probe cadence of the backend
    MAX_DATA_POINTS = 20        # chart fallback when a window is unknown

    PROVIDERS = ("cloudflare", "google", "facebook", "x")
    LINKS = {"primary": 0, "secondary": 1}

    # Window id -> rows requested from the backend
    TIME_RANGES = {
        "5min": 20,
        "15min": 60,
        "3hr": 720,
        "12hr": 2880,
        "24hr": 5760,
        "3day": 17280,
        "7day": 40320,
        "30day": 172800,
    }

    # Window id -> minutes used by the statistics
    WINDOW_MINUTES = {
        "3min": 3,
        "5min": 5,
        "15min": 15,
        "60min": 60,
        "1hr": 60,
        "3hr": 180,
        "4hr": 240,
        "12hr": 720,
        "24hr": 1440,
        "3day": 4320,
        "7day": 10080,
        "30day": 43200,
    }
    DEFAULT_WINDOW = "15min"

    AVERAGE_PERIODS = ("15min", "1hr", "4hr", "12hr", "24hr", "7day")

    RETENTION_SAMPLES = TIME_RANGES["7day"]
    STABILITY_CACHE_SIZE = 10

    # --- Poll Periods (seconds) ---
    class Poll:
        LATENCY = _env_int("POLL_LATENCY_S", 15)
        FULL_RANGE = _env_int("POLL_FULL_RANGE_S", 30)
        LINK_STATES = _env_int("POLL_LINK_STATES_S", 5)
        NETWORK_STATUS = _env_int("POLL_NETWORK_STATUS_S", 15)
        SETTINGS = _env_int("POLL_SETTINGS_S", 30)
        ACTIVITY_LOG = _env_int("POLL_ACTIVITY_LOG_S", 30)
        CLOCK_TICK = 1
        CONNECTION_RETRY = 5
        INITIAL_DELAY = 5

    # --- Settle Delays (seconds, NOT user configurable) ---
    class Settle:
        SCHEDULE_SAVE = 3
        AUTORESTART_TOGGLE = 2
        COMMAND_REFRESH = 1

    ACTIVITY_LOG_LIMIT = 10


def window_minutes(window_id: str) -> int:
    """Resolve a window id to minutes; unknown ids fall back to 15 minutes."""
    return Config.WINDOW_MINUTES.get(window_id, 15)


def window_rows(window_id: str) -> int:
    """Rows to request for a chart window."""
    return Config.TIME_RANGES.get(window_id, Config.MAX_DATA_POINTS)
