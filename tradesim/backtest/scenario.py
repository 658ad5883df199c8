"""Headless survival/profitability replay.

A scenario replays a whole bar series against pre-computed signals with 1%
compounding risk and condenses the outcome into a small summary of account
survival and position-size drift.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from loguru import logger

from tradesim.backtest.engine import BacktestEngine, bracket_levels
from tradesim.core.models import BacktestConfig, Bar, Signal

SCENARIO_RISK_PCT = 0.01
# Equity at or below this is treated as a wiped-out account
BLOWN_EQUITY_THRESHOLD = 10.0
SIZING_SAMPLE_POINTS = 5


@dataclass(frozen=True)
class SizingSample:
    time: int
    size: float
    balance: float


@dataclass(frozen=True)
class ScenarioSummary:
    initial_balance: float
    final_balance: float
    net_profit: float
    is_blown: bool
    blown_time: Optional[int]
    max_drawdown: float
    total_trades: int
    win_rate: float
    lot_sizing_sample: Tuple[SizingSample, ...]
    min_equity: float
    max_equity: float

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _first_signal_by_time(signals: Iterable[Signal]) -> Dict[int, Signal]:
    by_time: Dict[int, Signal] = {}
    for sig in signals:
        by_time.setdefault(sig.time, sig)
    return by_time


def sample_evenly(history: Sequence[SizingSample], points: int = SIZING_SAMPLE_POINTS):
    """Keep every ceil(n/points)-th entry, starting with the first."""
    if not history:
        return ()
    stride = math.ceil(len(history) / points)
    return tuple(h for i, h in enumerate(history) if i % stride == 0)


def run_scenario(
    bars: Sequence[Bar], signals: Iterable[Signal], config: BacktestConfig
) -> ScenarioSummary:
    """
    Replay `bars` on a fresh engine, opening the first signal found for each bar.

    Stops sit one ATR proxy away and targets two; risk is 1% of equity at the
    time of the signal, so sizing compounds with the account.
    """
    engine = BacktestEngine(config)
    by_time = _first_signal_by_time(signals)

    min_equity = float(config.initial_balance)
    max_equity = float(config.initial_balance)
    blown_time: Optional[int] = None
    sizing: list[SizingSample] = []

    for bar in bars:
        engine.process_candle(bar)

        current = engine.get_equity()
        min_equity = min(min_equity, current)
        max_equity = max(max_equity, current)
        if blown_time is None and current <= BLOWN_EQUITY_THRESHOLD:
            blown_time = bar.time

        signal = by_time.get(bar.time)
        if signal is None or current <= 0:
            continue

        sl, tp = bracket_levels(bar, signal.type, 1.0, 2.0)
        risk_amount = current * SCENARIO_RISK_PCT
        dist = abs(bar.close - sl)
        size = risk_amount / dist if dist > 0 else 0.0
        sizing.append(SizingSample(bar.time, round(size, 2), round(current, 2)))

        engine.open_trade(bar, signal.type, sl, tp, SCENARIO_RISK_PCT, signal.strategy_name)

    metrics = engine.calculate_metrics()
    summary = ScenarioSummary(
        initial_balance=float(config.initial_balance),
        final_balance=metrics.net_profit + float(config.initial_balance),
        net_profit=metrics.net_profit,
        is_blown=min_equity <= BLOWN_EQUITY_THRESHOLD,
        blown_time=blown_time,
        max_drawdown=metrics.max_drawdown,
        total_trades=metrics.total_trades,
        win_rate=metrics.win_rate,
        lot_sizing_sample=sample_evenly(sizing),
        min_equity=min_equity,
        max_equity=max_equity,
    )
    logger.info(
        "[scenario] bars={} trades={} net={:.2f} blown={} maxDD={:.2f}%",
        len(bars),
        summary.total_trades,
        summary.net_profit,
        summary.is_blown,
        summary.max_drawdown,
    )
    return summary


__all__ = ["ScenarioSummary", "SizingSample", "run_scenario", "sample_evenly"]
