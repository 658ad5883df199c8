from __future__ import annotations

from typing import List

import numpy as np
import pytest

from tradesim.core.models import BacktestConfig, Bar, Signal, TradeSide

# 2024-01-01 00:00:00 UTC
T0 = 1_704_067_200
HOUR = 3600


@pytest.fixture
def frictionless() -> BacktestConfig:
    return BacktestConfig(
        initial_balance=100_000.0,
        leverage=1.0,
        commission=0.0,
        slippage=0.0,
        use_synthetic_ticks=True,
    )


@pytest.fixture
def costly() -> BacktestConfig:
    return BacktestConfig(
        initial_balance=100_000.0,
        leverage=1.0,
        commission=0.001,
        slippage=0.5,
        use_synthetic_ticks=True,
    )


@pytest.fixture(scope="module")
def toy_bars() -> List[Bar]:
    """Deterministic hourly random walk around 1.10 (FX-like prices)."""
    rng = np.random.default_rng(seed=42)
    n = 300
    close = 1.10 * np.cumprod(1 + rng.normal(0.0, 0.002, n))
    open_ = np.r_[close[0], close[:-1]]
    spread = np.abs(rng.normal(0.0015, 0.0005, n))
    high = np.maximum(open_, close) + spread
    low = np.minimum(open_, close) - spread
    return [
        Bar(time=T0 + i * HOUR, open=o, high=h, low=lo, close=c)
        for i, (o, h, lo, c) in enumerate(zip(open_, high, low, close))
    ]


@pytest.fixture(scope="module")
def toy_signals(toy_bars) -> List[Signal]:
    signals = []
    for i in range(5, len(toy_bars), 12):
        side = TradeSide.LONG if (i // 12) % 2 == 0 else TradeSide.SHORT
        strategy = "trend" if side is TradeSide.LONG else "fade"
        signals.append(
            Signal(
                time=toy_bars[i].time,
                type=side,
                reason="toy",
                strategy_name=strategy.title(),
                strategy_id=strategy,
            )
        )
    return signals
