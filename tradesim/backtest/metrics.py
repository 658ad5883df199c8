# tradesim/backtest/metrics.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import numpy as np
from loguru import logger

from tradesim.core.models import EquityPoint, Trade, TradeStatus
from tradesim.sessions import OFF_HOURS, empty_distribution

SECONDS_PER_HOUR = 3600.0


# -------- Data classes --------
@dataclass(frozen=True)
class BacktestMetrics:
    """
    Performance snapshot derived from a trade list and an equity curve.

    Units: `win_rate` and `max_drawdown` are percentages, `avg_mae`/`avg_mfe`
    are pnl in account currency, durations are seconds except
    `avg_recovery_time` which is hours. `sharpe_ratio` is a per-trade proxy
    scaled by sqrt(trade count), not a calendar-annualized figure.
    """

    total_trades: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_abs: float = 0.0
    expectancy: float = 0.0
    net_profit: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_rr: float = 0.0
    avg_pips: float = 0.0
    consecutive_wins: int = 0
    consecutive_losses: int = 0
    sqn: float = 0.0
    avg_trade_duration: float = 0.0
    avg_time_to_profit: float = 0.0
    avg_time_to_loss: float = 0.0
    profit_per_hour: float = 0.0
    killzone_stats: Dict[str, int] = field(default_factory=empty_distribution)
    avg_mae: float = 0.0
    avg_mfe: float = 0.0
    avg_recovery_time: float = 0.0
    recovery_count: int = 0
    equity_curve: Tuple[EquityPoint, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------- Internals --------
def _as_point(raw: Any) -> EquityPoint:
    if isinstance(raw, EquityPoint):
        return raw
    if isinstance(raw, dict):
        return EquityPoint(int(raw["time"]), float(raw["value"]))
    time, value = raw
    return EquityPoint(int(time), float(value))


def _safe_div(num: float, den: float) -> float:
    if den == 0:
        return 0.0
    out = num / den
    return out if math.isfinite(out) else 0.0


def _streaks(closed: Sequence[Trade]) -> Tuple[int, int]:
    max_wins = max_losses = 0
    cur_wins = cur_losses = 0
    for t in closed:
        if t.pnl > 0:
            cur_wins += 1
            cur_losses = 0
            max_wins = max(max_wins, cur_wins)
        else:
            cur_losses += 1
            cur_wins = 0
            max_losses = max(max_losses, cur_losses)
    return max_wins, max_losses


def _drawdown_and_recovery(
    curve: Iterable[EquityPoint], initial_balance: float
) -> Tuple[float, float, float, int]:
    """Return (max_dd_pct, max_dd_abs, avg_recovery_hours, recovery_count)."""
    max_dd_abs = 0.0
    max_dd_pct = 0.0
    peak = float(initial_balance)
    total_recovery = 0.0
    recoveries = 0
    in_drawdown = False
    dd_start = 0

    for point in curve:
        if point.value > peak:
            if in_drawdown:
                total_recovery += point.time - dd_start
                recoveries += 1
                in_drawdown = False
            peak = point.value
        elif point.value < peak:
            if not in_drawdown:
                in_drawdown = True
                dd_start = point.time
            dd = peak - point.value
            max_dd_abs = max(max_dd_abs, dd)
            if peak > 0:
                max_dd_pct = max(max_dd_pct, dd / peak * 100.0)

    avg_recovery = _safe_div(total_recovery, recoveries) / SECONDS_PER_HOUR
    return max_dd_pct, max_dd_abs, avg_recovery, recoveries


def _return_stats(closed: Sequence[Trade], initial_balance: float) -> Tuple[float, float]:
    """Mean and population std-dev of per-trade returns; std falls back to 1."""
    if not closed or initial_balance == 0:
        return 0.0, 1.0
    returns = np.array([t.pnl / initial_balance for t in closed], dtype=float)
    mean = float(returns.mean())
    std = float(returns.std(ddof=0))
    if not math.isfinite(mean):
        mean = 0.0
    if not math.isfinite(std) or std == 0:
        std = 1.0
    return mean, std


# -------- Public API --------
def calculate(
    trades: Iterable[Trade],
    equity_curve: Iterable[EquityPoint],
    initial_balance: float,
) -> BacktestMetrics:
    """
    Compute the full metrics snapshot.

    Only closed trades are counted. Storage order is taken as chronological
    for streaks. Every ratio falls back to 0 when its denominator is 0, so
    the snapshot is always finite and presentable.
    """
    closed: List[Trade] = [t for t in trades if t.status is not TradeStatus.OPEN]
    curve = tuple(_as_point(p) for p in equity_curve)
    n = len(closed)
    if n == 0 and not curve:
        return BacktestMetrics()

    wins = [t for t in closed if t.pnl > 0]
    losses = [t for t in closed if t.pnl <= 0]

    net_profit = float(sum(t.pnl for t in closed))
    win_rate = _safe_div(len(wins), n) * 100.0

    gross_profit = float(sum(t.pnl for t in wins))
    gross_loss = abs(float(sum(t.pnl for t in losses)))
    profit_factor = _safe_div(gross_profit, gross_loss) if gross_loss > 0 else gross_profit

    avg_win = _safe_div(gross_profit, len(wins))
    avg_loss = _safe_div(gross_loss, len(losses))
    expectancy = 0.0
    if n > 0:
        expectancy = (avg_win * (win_rate / 100.0)) - (abs(avg_loss) * (1 - win_rate / 100.0))

    avg_rr = _safe_div(sum(t.risk_reward for t in closed), n)
    avg_pips = _safe_div(sum(t.pips for t in closed), n)
    avg_mae = _safe_div(sum(t.mae for t in closed), n)
    avg_mfe = _safe_div(sum(t.mfe for t in closed), n)

    total_duration = 0.0
    win_duration = 0.0
    loss_duration = 0.0
    sessions = empty_distribution()
    for t in closed:
        dur = t.duration_seconds or 0
        total_duration += dur
        if t.pnl > 0:
            win_duration += dur
        else:
            loss_duration += dur
        if t.killzone in sessions:
            sessions[t.killzone] += 1
        else:
            sessions[OFF_HOURS] += 1

    avg_trade_duration = _safe_div(total_duration, n)
    avg_time_to_profit = _safe_div(win_duration, len(wins))
    avg_time_to_loss = _safe_div(loss_duration, len(losses))
    profit_per_hour = _safe_div(net_profit, total_duration / SECONDS_PER_HOUR)

    max_wins, max_losses = _streaks(closed)
    max_dd, max_dd_abs, avg_recovery, recoveries = _drawdown_and_recovery(
        curve, initial_balance
    )

    mean_ret, std_ret = _return_stats(closed, initial_balance)
    sharpe = (mean_ret / std_ret) * math.sqrt(n) if n > 0 else 0.0
    sqn_den = std_ret * initial_balance
    if sqn_den == 0:
        sqn_den = 1.0
    sqn = math.sqrt(n) * (expectancy / sqn_den) if n > 0 else 0.0

    logger.debug(
        "[metrics] n={} win={:.1f}% pf={:.3f} net={:.2f} sharpe={:.3f} sqn={:.3f} maxDD={:.2f}%",
        n,
        win_rate,
        profit_factor,
        net_profit,
        sharpe,
        sqn,
        max_dd,
    )

    return BacktestMetrics(
        total_trades=n,
        win_rate=win_rate,
        profit_factor=profit_factor,
        sharpe_ratio=sharpe,
        max_drawdown=max_dd,
        max_drawdown_abs=max_dd_abs,
        expectancy=expectancy,
        net_profit=net_profit,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        avg_win=avg_win,
        avg_loss=avg_loss,
        avg_rr=avg_rr,
        avg_pips=avg_pips,
        consecutive_wins=max_wins,
        consecutive_losses=max_losses,
        sqn=sqn,
        avg_trade_duration=avg_trade_duration,
        avg_time_to_profit=avg_time_to_profit,
        avg_time_to_loss=avg_time_to_loss,
        profit_per_hour=profit_per_hour,
        killzone_stats=sessions,
        avg_mae=avg_mae,
        avg_mfe=avg_mfe,
        avg_recovery_time=avg_recovery,
        recovery_count=recoveries,
        equity_curve=curve,
    )


__all__ = ["BacktestMetrics", "calculate"]
