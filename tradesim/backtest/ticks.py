"""Intrabar price path approximation for OHLC-only data."""

from __future__ import annotations

from typing import List

from tradesim.core.models import Bar


def expand(bar: Bar, synthetic: bool = True) -> List[float]:
    """
    Return the ordered prices a bar is assumed to have traded through.

    With `synthetic` set, an up bar (close >= open) is walked open, low,
    high, close and a down bar open, high, low, close. Without it the order
    is always open, high, low, close. Neither is guaranteed to match the real
    path; both are deterministic.
    """
    if not synthetic:
        return [bar.open, bar.high, bar.low, bar.close]
    if bar.close >= bar.open:
        return [bar.open, bar.low, bar.high, bar.close]
    return [bar.open, bar.high, bar.low, bar.close]


__all__ = ["expand"]
