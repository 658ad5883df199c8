"""Position ledger: bar-by-bar trade simulation with SL/TP and cost model.

The engine replays OHLC bars one at a time. Each bar is expanded into a short
synthetic tick path (see `tradesim.backtest.ticks`), every open trade is
walked along that path to track excursions and detect stop/target hits, and
one mark-to-market equity point is appended per bar.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import List, Optional, Tuple

from loguru import logger

from tradesim.backtest import ticks
from tradesim.backtest.metrics import BacktestMetrics, calculate
from tradesim.core.models import (
    BacktestConfig,
    Bar,
    EquityPoint,
    Trade,
    TradeSide,
    TradeStatus,
)
from tradesim.sessions import classify

# Approximate ATR as three bar ranges
ATR_RANGE_MULT = 3.0
# Entry prices above this are treated as non-FX for pip scaling
PIP_PRICE_THRESHOLD = 500.0
FX_PIP_SCALE = 10_000.0


def atr_proxy(bar: Bar) -> float:
    return bar.range * ATR_RANGE_MULT


def bracket_levels(
    bar: Bar, side: TradeSide | str, sl_mult: float = 1.0, tp_mult: float = 2.0
) -> Tuple[float, float]:
    """
    Stop/target prices around the bar close from the ATR proxy.

    Args:
        bar (Bar): The signal bar.
        side (TradeSide | str): LONG or SHORT.
        sl_mult (float): Stop distance in ATR-proxy multiples.
        tp_mult (float): Target distance in ATR-proxy multiples.

    Returns:
        Tuple[float, float]: The (sl, tp) price levels.
    """
    atr = atr_proxy(bar)
    stop_dist = atr * sl_mult
    target_dist = atr * tp_mult
    if TradeSide(side) is TradeSide.LONG:
        return bar.close - stop_dist, bar.close + target_dist
    return bar.close + stop_dist, bar.close - target_dist


def _new_trade_id() -> str:
    return uuid.uuid4().hex[:9]


class BacktestEngine:
    """
    Single-instrument, in-memory trade simulator.

    The engine is the sole owner of its trades; `get_trades()` hands out
    copies. Balance changes only when a trade closes, by exactly that
    trade's net pnl. Equity is recomputed from balance plus floating pnl on
    every processed bar.
    """

    def __init__(self, config: BacktestConfig):
        self.config = config
        self._balance = float(config.initial_balance)
        self._equity = float(config.initial_balance)
        self._trades: List[Trade] = []
        self._open: List[Trade] = []
        self._equity_curve: List[EquityPoint] = []

    # ------------------------------------------------------------------ state
    @property
    def balance(self) -> float:
        return self._balance

    @property
    def equity(self) -> float:
        return self._equity

    @property
    def equity_curve(self) -> Tuple[EquityPoint, ...]:
        return tuple(self._equity_curve)

    def get_equity(self) -> float:
        return self._equity

    def get_balance(self) -> float:
        return self._balance

    def get_trades(self) -> List[Trade]:
        """Snapshot of every trade (open and closed) in opening order."""
        return [replace(t) for t in self._trades]

    def open_trades(self) -> List[Trade]:
        return [replace(t) for t in self._open]

    # ------------------------------------------------------------- execution
    def open_trade(
        self,
        bar: Bar,
        side: TradeSide | str,
        sl: float,
        tp: float,
        risk_pct: float = 0.01,
        label: str = "Manual",
    ) -> None:
        """
        Open a position at the bar close, sized to risk `risk_pct` of equity.

        A stop placed exactly at the close gives no risk distance; the order
        is dropped without error.
        """
        side = TradeSide(side)
        entry = bar.close
        dist_to_stop = abs(entry - sl)
        if dist_to_stop == 0:
            logger.debug("[engine] rejected {} at {}: zero stop distance", side.value, bar.time)
            return

        risk_amount = self._equity * risk_pct
        size = (risk_amount / dist_to_stop) * self.config.leverage
        risk_reward = abs(tp - entry) / dist_to_stop

        trade = Trade(
            id=_new_trade_id(),
            entry_time=bar.time,
            type=side,
            entry_price=entry,
            size=size,
            sl=sl,
            tp=tp,
            killzone=classify(bar.time),
            risk_reward=risk_reward,
            setup_origin=label,
        )
        self._trades.append(trade)
        self._open.append(trade)
        logger.debug(
            "[engine] open id={} side={} entry={} sl={} tp={} size={:.6f} origin={}",
            trade.id,
            side.value,
            entry,
            sl,
            tp,
            size,
            label,
        )

    def process_candle(self, bar: Bar) -> None:
        """Advance all open trades through one bar and record equity."""
        if not self._trades:
            self._equity_curve.append(EquityPoint(bar.time, self._balance))
            return

        path = ticks.expand(bar, self.config.use_synthetic_ticks)
        for trade in list(self._open):
            for price in path:
                pnl = trade.gross_pnl_at(price)
                if pnl > trade.mfe:
                    trade.mfe = pnl
                if pnl < trade.mae:
                    trade.mae = pnl

                if trade.type is TradeSide.LONG:
                    hit_sl = price <= trade.sl
                    hit_tp = price >= trade.tp
                else:
                    hit_sl = price >= trade.sl
                    hit_tp = price <= trade.tp

                if hit_sl:
                    self._close_trade(trade, trade.sl, bar.time, TradeStatus.CLOSED_SL)
                    break
                if hit_tp:
                    self._close_trade(trade, trade.tp, bar.time, TradeStatus.CLOSED_TP)
                    break

        self._mark_to_market(bar.close)
        self._equity_curve.append(EquityPoint(bar.time, self._equity))

    def close_position(self, trade_id: str, price: float, time: int) -> bool:
        """Close one open trade at `price`. Returns False if nothing was open under that id."""
        for trade in self._open:
            if trade.id == trade_id:
                self._close_trade(trade, price, time, TradeStatus.CLOSED_MANUAL)
                self._mark_to_market(price)
                return True
        return False

    def close_all(self, price: float, time: int) -> int:
        """Close every open trade at `price`; returns how many were closed."""
        closing = list(self._open)
        for trade in closing:
            self._close_trade(trade, price, time, TradeStatus.CLOSED_MANUAL)
        if closing:
            self._mark_to_market(price)
        return len(closing)

    def calculate_metrics(self) -> BacktestMetrics:
        """Metrics snapshot of the ledger as it stands."""
        return calculate(self._trades, self._equity_curve, self.config.initial_balance)

    # ------------------------------------------------------------- internals
    def _floating_pnl(self, price: float) -> float:
        return sum(t.gross_pnl_at(price) for t in self._open)

    def _mark_to_market(self, price: float) -> None:
        self._equity = self._balance + self._floating_pnl(price)

    def _close_trade(
        self, trade: Trade, price: float, time: int, status: TradeStatus
    ) -> None:
        trade.exit_price = price
        trade.exit_time = time
        trade.status = status
        trade.duration_seconds = time - trade.entry_time

        raw_diff = (price - trade.entry_price) * trade.direction()
        slippage_cost = self.config.slippage * trade.size
        commission_cost = (price * trade.size) * self.config.commission
        trade.pnl = (raw_diff * trade.size) - commission_cost - slippage_cost

        scale = 1.0 if trade.entry_price > PIP_PRICE_THRESHOLD else FX_PIP_SCALE
        trade.pips = raw_diff * scale

        self._balance += trade.pnl
        self._open.remove(trade)
        logger.debug(
            "[engine] close id={} status={} exit={} pnl={:.2f} balance={:.2f}",
            trade.id,
            status.value,
            price,
            trade.pnl,
            self._balance,
        )


__all__ = ["BacktestEngine", "atr_proxy", "bracket_levels"]
