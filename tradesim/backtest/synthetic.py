"""Synthetic "dream data" bars for stress-testing strategies.

Prices follow a geometric Brownian motion on 15-minute steps with an
optional jump component ("black swans"). Wicks are random fractions of the
volatility beyond the body. Inputs are not range-checked: very high
volatility can push lows below zero, and the engine is expected to cope.
"""

from __future__ import annotations

import time
from typing import List, Optional

import numpy as np
from loguru import logger

from tradesim.core.models import Bar

BAR_SECONDS = 900
BARS_PER_DAY = 24 * 4
START_PRICE = 1000.0
# Annualisation step used for drift and diffusion
DT = 1.0 / 252.0
# Jump returns are uniform in [-JUMP_SCALE/2, JUMP_SCALE/2)
JUMP_SCALE = 0.2
WICK_SCALE = 0.1


def dream_bars(
    days: int,
    volatility: float,
    trend: float,
    black_swan_prob: float,
    *,
    seed: Optional[int] = None,
    start: Optional[int] = None,
    start_price: float = START_PRICE,
) -> List[Bar]:
    """
    Generate `days * 96` consecutive 15-minute bars.

    Args:
        days: Length of the series in days.
        volatility: Annualised volatility of the diffusion term.
        trend: Annualised drift.
        black_swan_prob: Per-bar probability of a jump return.
        seed: Seed for `numpy.random.default_rng`; the same seed (and start)
            always yields the same series.
        start: Epoch seconds of the first bar. Defaults to `days` before now.
        start_price: Open of the first bar.
    """
    steps = max(0, int(days) * BARS_PER_DAY)
    if start is None:
        start = int(time.time()) - int(days) * 86400
    if steps == 0:
        return []

    rng = np.random.default_rng(seed)
    z = rng.standard_normal(steps)
    jump_hit = rng.random(steps) < black_swan_prob
    jumps = np.where(jump_hit, (rng.random(steps) - 0.5) * JUMP_SCALE, 0.0)
    returns = trend * DT + volatility * np.sqrt(DT) * z + jumps

    close = start_price * np.exp(np.cumsum(returns))
    open_ = np.r_[start_price, close[:-1]]
    high = np.maximum(open_, close) * (1 + rng.random(steps) * volatility * WICK_SCALE)
    low = np.minimum(open_, close) * (1 - rng.random(steps) * volatility * WICK_SCALE)

    logger.debug(
        "[synthetic] bars={} vol={} trend={} jumps={} seed={}",
        steps,
        volatility,
        trend,
        int(jump_hit.sum()),
        seed,
    )
    return [
        Bar(time=start + i * BAR_SECONDS, open=o, high=h, low=lo, close=c)
        for i, (o, h, lo, c) in enumerate(
            zip(open_.tolist(), high.tolist(), low.tolist(), close.tolist())
        )
    ]


__all__ = ["dream_bars", "BAR_SECONDS", "BARS_PER_DAY"]
