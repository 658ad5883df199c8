from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic.fields import AliasChoices


class TradeSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED_TP = "CLOSED_TP"
    CLOSED_SL = "CLOSED_SL"
    CLOSED_MANUAL = "CLOSED_MANUAL"


class Bar(BaseModel):
    """
    One OHLC bar handed over by the market-data layer.

    Attributes:
        time (int): Bar open time in epoch seconds (UTC).
        open (float): The open price.
        high (float): The high price.
        low (float): The low price.
        close (float): The close price.
    """

    model_config = ConfigDict(frozen=True)

    time: int = Field(validation_alias=AliasChoices("time", "t", "timestamp"))
    open: float = Field(validation_alias=AliasChoices("open", "o"))
    high: float = Field(validation_alias=AliasChoices("high", "h"))
    low: float = Field(validation_alias=AliasChoices("low", "l", "lo"))
    close: float = Field(validation_alias=AliasChoices("close", "c"))

    @property
    def range(self) -> float:
        """The high-low range of the bar."""
        return self.high - self.low


class Signal(BaseModel):
    """An entry signal emitted by the strategy layer for one bar time."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    time: int
    type: TradeSide
    reason: str = ""
    strategy_name: str = "Manual"
    strategy_id: Optional[str] = None


class BacktestConfig(BaseModel):
    """
    Engine configuration, fixed for the lifetime of one engine.

    Ranges are deliberately not validated: synthetic "dream data" runs feed
    irregular values and the engine must not refuse them.

    Attributes:
        initial_balance (float): Starting balance.
        leverage (float): Multiplier applied to the risk-based position size.
        commission (float): Fraction of exit notional charged per close.
        slippage (float): Price units charged per unit of size per close.
        use_synthetic_ticks (bool): Use direction-aware intrabar tick ordering.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    initial_balance: float = 100_000.0
    leverage: float = 1.0
    commission: float = 0.001
    slippage: float = 0.5
    use_synthetic_ticks: bool = True


@dataclass(frozen=True, slots=True)
class EquityPoint:
    """
    One mark-to-market sample, appended once per processed bar.

    Attributes:
        time (int): The bar time in epoch seconds.
        value (float): Realized balance plus floating pnl at the bar close.
    """

    time: int
    value: float


@dataclass(slots=True)
class Trade:
    """
    One simulated position.

    `mae`/`mfe` are the running minimum/maximum of the trade's gross pnl
    (currency units, not price distance). `pips` uses a crude scale: x1 when
    the entry price is above 500, x10000 otherwise.

    Attributes:
        id (str): Short random identifier.
        entry_time (int): Time of the bar the trade was opened on.
        type (TradeSide): LONG or SHORT.
        entry_price (float): Fill price (the entry bar close).
        size (float): Position size in units, already scaled by leverage.
        sl (float): Stop-loss price.
        tp (float): Take-profit price.
        pnl (float): Net pnl after commission and slippage; 0 while open.
        status (TradeStatus): OPEN until a stop, target or manual close.
        mae (float): Worst gross pnl seen while open (<= 0).
        mfe (float): Best gross pnl seen while open (>= 0).
        killzone (str): Session label of the entry time.
        risk_reward (float): Target distance over stop distance at entry.
        setup_origin (str): Name of the strategy or "Manual".
        exit_time (Optional[int]): Time of the closing bar.
        exit_price (Optional[float]): Fill price of the close.
        pips (float): Signed price move in pips.
        duration_seconds (int): exit_time - entry_time.
    """

    id: str
    entry_time: int
    type: TradeSide
    entry_price: float
    size: float
    sl: float
    tp: float
    pnl: float = 0.0
    status: TradeStatus = TradeStatus.OPEN
    mae: float = 0.0
    mfe: float = 0.0
    killzone: str = ""
    risk_reward: float = 0.0
    setup_origin: str = "Manual"
    exit_time: Optional[int] = None
    exit_price: Optional[float] = None
    pips: float = 0.0
    duration_seconds: int = 0

    @property
    def is_open(self) -> bool:
        return self.status is TradeStatus.OPEN

    def direction(self) -> float:
        return 1.0 if self.type is TradeSide.LONG else -1.0

    def gross_pnl_at(self, price: float) -> float:
        """Signed pnl of the full position at `price`, before costs."""
        return (price - self.entry_price) * self.direction() * self.size


__all__ = [
    "Bar",
    "Signal",
    "BacktestConfig",
    "EquityPoint",
    "Trade",
    "TradeSide",
    "TradeStatus",
]
