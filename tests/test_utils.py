import pytest

from link_monitor.config import window_minutes, window_rows
from link_monitor.utils import (
    format_countdown,
    format_duration_compact,
    format_period,
    format_uptime,
)


# =============================
# TEST GROUP: Uptime Formatting
# =============================
# Function: format_uptime()
# -------------------------
@pytest.mark.parametrize(
    "seconds, expected",
    [
        # ✅ Under a day
        (0, "00:00:00"),
        (3_725, "01:02:05"),

        # ✅ Days prefix
        (90_061, "1d 01:01:01"),

        # ❌ Clock skew clamps to zero
        (-42, "00:00:00"),
    ],
)

def test_format_uptime(seconds, expected):
    """Verify uptime/downtime clock strings"""
    assert format_uptime(seconds) == expected


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (7_200, "2h"),
        (7_500, "2h 5m"),
        (300, "5m"),
        (30, "<1m"),
        (0, ""),
        (-10, ""),
    ],
)

def test_format_duration_compact(seconds, expected):
    """Verify compact durations used in OFFLINE status text"""
    assert format_duration_compact(seconds) == expected


# ================================
# TEST GROUP: Countdown Formatting
# ================================
# Function: format_countdown()
# ----------------------------
@pytest.mark.parametrize(
    "seconds, expected",
    [
        # ✅ No next occurrence
        (None, ("--:--:--", False)),

        # ✅ Due or overdue
        (0, ("RESTARTING", True)),
        (-5, ("RESTARTING", True)),

        # ✅ Days away
        (90_061, ("1d 1h 1m", False)),

        # ✅ Hours away
        (3_725, ("1:02:05", False)),

        # ✅ Minutes away, just outside the warning window
        (300, ("5:00", False)),

        # ✅ Inside the warning window
        (299.6, ("4:59", True)),
    ],
)

def test_format_countdown(seconds, expected):
    """Verify countdown text and the five-minute warning flag"""
    assert format_countdown(seconds) == expected


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (1, "1 minute"),
        (15, "15 minutes"),
        (60, "1 hour"),
        (90, "1 hour 30 minutes"),
        (10_080, "168 hours"),
    ],
)

def test_format_period(minutes, expected):
    """Verify human readable window lengths"""
    assert format_period(minutes) == expected


# ==========================
# TEST GROUP: Window Lookups
# ==========================
@pytest.mark.parametrize(
    "window_id, expected_minutes, expected_rows",
    [
        ("15min", 15, 60),
        ("24hr", 1440, 5760),

        # ❌ Unknown ids fall back to defaults
        ("fortnight", 15, 20),
    ],
)

def test_window_lookups(window_id, expected_minutes, expected_rows):
    """Verify window id resolution"""
    assert window_minutes(window_id) == expected_minutes
    assert window_rows(window_id) == expected_rows
