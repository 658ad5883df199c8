"""Step-through replay of a bar series, as driven by the dashboard."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from loguru import logger

from tradesim.backtest.engine import BacktestEngine, bracket_levels
from tradesim.backtest.metrics import BacktestMetrics
from tradesim.backtest.sweeps import SweepResult, filter_signals, index_signals
from tradesim.core.models import BacktestConfig, Bar, Signal, Trade

REPLAY_RISK_PCT = 0.02
WARMUP_BARS = 100
DEFAULT_SL_MULT = 1.0
DEFAULT_TP_MULT = 2.0


class ReplaySession:
    """
    Feeds bars to an engine a few at a time.

    The first `warmup` bars are chart context only and never reach the
    engine. Every selected signal matching a processed bar is opened at the
    bar close with ATR-proxy brackets.
    """

    def __init__(
        self,
        bars: Sequence[Bar],
        signals: Iterable[Signal],
        config: BacktestConfig,
        *,
        strategy_ids: Optional[Iterable[str]] = None,
        risk_pct: float = REPLAY_RISK_PCT,
        warmup: int = WARMUP_BARS,
    ):
        self.bars = list(bars)
        self.config = config
        self.risk_pct = risk_pct
        self.warmup = warmup
        self.sl_mult = DEFAULT_SL_MULT
        self.tp_mult = DEFAULT_TP_MULT
        self._signals_by_time = index_signals(filter_signals(signals, strategy_ids))
        self.engine = BacktestEngine(config)
        self._cursor = self._start_index()

    def _start_index(self) -> int:
        return min(self.warmup, len(self.bars))

    @property
    def cursor(self) -> int:
        """Index of the next bar to be processed."""
        return self._cursor

    @property
    def finished(self) -> bool:
        return self._cursor >= len(self.bars)

    def reset(self, index: Optional[int] = None) -> None:
        self.engine = BacktestEngine(self.config)
        self._cursor = self._start_index() if index is None else index

    def apply_sweep(self, best: Optional[SweepResult]) -> None:
        """Use a sweep winner's multiples for new brackets; None restores defaults."""
        if best is None:
            self.sl_mult, self.tp_mult = DEFAULT_SL_MULT, DEFAULT_TP_MULT
        else:
            self.sl_mult, self.tp_mult = best.sl_mult, best.tp_mult

    def step(self, speed: int = 1) -> BacktestMetrics:
        """Process the next `speed` bars and return a fresh metrics snapshot."""
        stop = min(self._cursor + max(1, speed), len(self.bars))
        for bar in self.bars[self._cursor:stop]:
            self.engine.process_candle(bar)
            for sig in self._signals_by_time.get(bar.time, ()):
                sl, tp = bracket_levels(bar, sig.type, self.sl_mult, self.tp_mult)
                self.engine.open_trade(bar, sig.type, sl, tp, self.risk_pct, sig.strategy_name)
        self._cursor = stop
        return self.engine.calculate_metrics()

    def jump_to(self, timestamp: int) -> int:
        """Restart the engine at the bar nearest `timestamp`; returns its index."""
        if not self.bars:
            return 0
        closest = min(range(len(self.bars)), key=lambda i: abs(self.bars[i].time - timestamp))
        closest = max(closest, min(self.warmup, len(self.bars) - 1))
        closest = min(closest, len(self.bars) - 1)
        self.reset(closest)
        logger.debug("[replay] jump to {} -> index {}", timestamp, closest)
        return closest

    def trades(self) -> List[Trade]:
        return self.engine.get_trades()


__all__ = ["ReplaySession", "REPLAY_RISK_PCT", "WARMUP_BARS"]
