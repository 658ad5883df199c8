"""pandas adapters at the engine boundary.

Market-data and reporting layers mostly speak DataFrames; the engine speaks
`Bar` / `Trade` / `EquityPoint`. These helpers convert between the two and
load bar/signal files for the sweep CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import numpy as np
import pandas as pd
from pydantic import TypeAdapter, ValidationError

from tradesim.core.exceptions import DataValidationError
from tradesim.core.models import Bar, EquityPoint, Signal, Trade

OHLC_COLUMNS = ("open", "high", "low", "close")
TRADE_COLUMNS = [
    "id",
    "entry_time",
    "exit_time",
    "type",
    "entry_price",
    "exit_price",
    "size",
    "sl",
    "tp",
    "pnl",
    "status",
    "mae",
    "mfe",
    "killzone",
    "pips",
    "risk_reward",
    "setup_origin",
    "duration_seconds",
]

_signals_adapter = TypeAdapter(List[Signal])


def _epoch_seconds(values: pd.Series | pd.Index) -> np.ndarray:
    if pd.api.types.is_datetime64_any_dtype(values):
        ts = pd.to_datetime(values, utc=True)
        delta = (ts - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(seconds=1)
        return np.asarray(delta, dtype="int64")
    return np.asarray(values, dtype="int64")


def bars_from_frame(df: pd.DataFrame) -> List[Bar]:
    """
    Convert an OHLC frame into bars.

    Time comes from a `time` column (epoch seconds or datetimes) or, failing
    that, from a DatetimeIndex. Column names are matched case-insensitively.
    """
    frame = df.rename(columns=lambda c: str(c).strip().lower())
    missing = [c for c in OHLC_COLUMNS if c not in frame.columns]
    if missing:
        raise DataValidationError(f"bar frame missing columns: {missing}")

    if "time" in frame.columns:
        times = _epoch_seconds(frame["time"])
    elif isinstance(frame.index, pd.DatetimeIndex):
        times = _epoch_seconds(frame.index)
    else:
        raise DataValidationError("bar frame needs a 'time' column or a DatetimeIndex")

    ohlc = frame.loc[:, list(OHLC_COLUMNS)].astype(float).to_numpy()
    return [
        Bar(time=int(t), open=o, high=h, low=lo, close=c)
        for t, (o, h, lo, c) in zip(times, ohlc)
    ]


def load_bars(path: Path) -> List[Bar]:
    """Read bars from a CSV or JSON records file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bars file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix == ".json":
        df = pd.read_json(path, orient="records")
    else:
        raise DataValidationError(f"Unsupported bars format: {suffix}")
    if "time" in df.columns and not pd.api.types.is_numeric_dtype(df["time"]):
        df["time"] = pd.to_datetime(df["time"], utc=True)
    return bars_from_frame(df)


def load_signals(path: Path) -> List[Signal]:
    """Read a JSON array of signals (camelCase or snake_case keys)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Signals file not found: {path}")
    try:
        return _signals_adapter.validate_json(path.read_bytes())
    except ValidationError as exc:
        raise DataValidationError(f"invalid signals file {path}: {exc}") from exc


def trades_frame(trades: Iterable[Trade]) -> pd.DataFrame:
    rows = []
    for t in trades:
        rows.append(
            {
                "id": t.id,
                "entry_time": t.entry_time,
                "exit_time": t.exit_time,
                "type": t.type.value,
                "entry_price": t.entry_price,
                "exit_price": t.exit_price,
                "size": t.size,
                "sl": t.sl,
                "tp": t.tp,
                "pnl": t.pnl,
                "status": t.status.value,
                "mae": t.mae,
                "mfe": t.mfe,
                "killzone": t.killzone,
                "pips": t.pips,
                "risk_reward": t.risk_reward,
                "setup_origin": t.setup_origin,
                "duration_seconds": t.duration_seconds,
            }
        )
    return pd.DataFrame(rows, columns=TRADE_COLUMNS)


def equity_frame(curve: Iterable[EquityPoint]) -> pd.DataFrame:
    """Equity curve indexed by UTC timestamp with a single `equity` column."""
    points = list(curve)
    idx = pd.to_datetime([p.time for p in points], unit="s", utc=True)
    return pd.DataFrame({"equity": [p.value for p in points]}, index=idx)


def drawdown_series(curve: Iterable[EquityPoint]) -> pd.Series:
    """Fractional drawdown from the running peak (0 at new highs, negative below)."""
    s = equity_frame(curve)["equity"].astype(float)
    if s.empty:
        return pd.Series(dtype=float)
    peak = s.cummax()
    dd = (s / peak.where(peak > 0)) - 1.0
    return dd.fillna(0.0)


__all__ = [
    "bars_from_frame",
    "load_bars",
    "load_signals",
    "trades_frame",
    "equity_frame",
    "drawdown_series",
]
