# --- Standard library imports ---
import math


UNKNOWN_CLOCK = "--:--:--"
WARNING_WINDOW_S = 5 * 60


def format_uptime(seconds: float) -> str:
    """
    Format an elapsed duration for the uptime/downtime clocks.

    Returns:
        'Nd HH:MM:SS' once at least a day has elapsed, otherwise 'HH:MM:SS'.
        Negative durations (clock skew) are clamped to zero.
    """
    seconds = max(0, int(seconds))

    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)

    if days > 0:
        return f"{days}d {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration_compact(seconds: float) -> str:
    """'2h 5m', '2h', '5m', '<1m'; empty string for non-positive input."""
    if seconds <= 0:
        return ""

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)

    if hours > 0 and minutes > 0:
        return f"{hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return "<1m"


def format_countdown(seconds: float | None) -> tuple[str, bool]:
    """
    Format time remaining until the next scheduled restart.

    Returns:
        (text, warning) where warning is True inside the last five minutes.
    """
    if seconds is None:
        return UNKNOWN_CLOCK, False

    if seconds <= 0:
        return "RESTARTING", True

    total = math.floor(seconds)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)

    if days > 0:
        text = f"{days}d {hours}h {minutes}m"
    elif hours > 0:
        text = f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        text = f"{minutes}:{secs:02d}"

    return text, seconds < WARNING_WINDOW_S


def format_period(minutes: int) -> str:
    """Human readable window length ('15 minutes', '1 hour 30 minutes')."""
    def plural(n, unit):
        return f"{n} {unit}{'' if n == 1 else 's'}"

    if minutes < 60:
        return plural(minutes, "minute")

    hours, rem = divmod(minutes, 60)
    if rem == 0:
        return plural(hours, "hour")
    return f"{plural(hours, 'hour')} {plural(rem, 'minute')}"
