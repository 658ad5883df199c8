"""Session classification package.

Maps bar timestamps onto the UTC trading-session windows used to tag
trades at entry and to bucket the session distribution in metrics.
"""

from .killzones import (
    ASIAN,
    LONDON,
    NY_AM,
    NY_PM,
    OFF_HOURS,
    SESSION_ORDER,
    classify,
    empty_distribution,
)

__all__ = [
    "ASIAN",
    "LONDON",
    "NY_AM",
    "NY_PM",
    "OFF_HOURS",
    "SESSION_ORDER",
    "classify",
    "empty_distribution",
]
