from __future__ import annotations

from typing import Dict

SECONDS_PER_HOUR = 3600
HOURS_PER_DAY = 24

# Canonical session labels
ASIAN = "Asian"
LONDON = "London"
NY_AM = "NY AM"
NY_PM = "NY PM"
OFF_HOURS = "Off-Hours"

SESSION_ORDER = (ASIAN, LONDON, NY_AM, NY_PM, OFF_HOURS)

# [start_hour, end_hour) in UTC; anything not covered is OFF_HOURS
_WINDOWS = (
    (0, 8, ASIAN),
    (8, 13, LONDON),
    (13, 16, NY_AM),
    (16, 21, NY_PM),
)


def utc_hour(timestamp: float) -> int:
    """UTC hour of day for an epoch-seconds value; defined for any finite input."""
    return int(timestamp // SECONDS_PER_HOUR) % HOURS_PER_DAY


def classify(timestamp: float) -> str:
    """Return the session label for an epoch-seconds timestamp."""
    hour = utc_hour(timestamp)
    for start, end, name in _WINDOWS:
        if start <= hour < end:
            return name
    return OFF_HOURS


def empty_distribution() -> Dict[str, int]:
    """A zeroed count per session, in canonical order."""
    return {name: 0 for name in SESSION_ORDER}


__all__ = [
    "ASIAN",
    "LONDON",
    "NY_AM",
    "NY_PM",
    "OFF_HOURS",
    "SESSION_ORDER",
    "classify",
    "empty_distribution",
    "utc_hour",
]
