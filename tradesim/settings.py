"""Engine and sweep defaults powered by pydantic-settings.

Environment matrix:

| Section  | Environment Variable         | Default             | Purpose                                   |
|----------|------------------------------|---------------------|-------------------------------------------|
| Backtest | `BACKTEST_INITIAL_BALANCE`   | `100000`            | Starting account balance                  |
| Backtest | `BACKTEST_LEVERAGE`          | `1`                 | Position size multiplier                  |
| Backtest | `BACKTEST_COMMISSION`        | `0.001`             | Commission as a fraction of exit notional |
| Backtest | `BACKTEST_SLIPPAGE`          | `0.5`               | Slippage in price units per unit of size  |
| Backtest | `BACKTEST_SYNTHETIC_TICKS`   | `true`              | Direction-aware intrabar tick ordering    |
| Sweep    | `SWEEP_SLICE_MS`             | `16`                | Wall-clock budget per cooperative slice   |
| Sweep    | `SWEEP_RISK_PCT`             | `0.01`              | Fraction of equity risked per sweep trade |
| Sweep    | `SWEEP_OUTPUT_DIR`           | `artifacts/sweeps`  | Root directory for CLI sweep summaries    |

These objects are only read by hosts and the sweep CLI. The engine never looks
at the environment; it receives a `BacktestConfig` explicitly.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradesim.core.models import BacktestConfig


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class BacktestSettings(_SettingsBase):
    """Default engine configuration."""

    initial_balance: float = Field(default=100_000.0, alias="BACKTEST_INITIAL_BALANCE")
    leverage: float = Field(default=1.0, alias="BACKTEST_LEVERAGE")
    commission: float = Field(default=0.001, alias="BACKTEST_COMMISSION")
    slippage: float = Field(default=0.5, alias="BACKTEST_SLIPPAGE")
    use_synthetic_ticks: bool = Field(default=True, alias="BACKTEST_SYNTHETIC_TICKS")

    def to_config(self) -> BacktestConfig:
        return BacktestConfig(
            initial_balance=self.initial_balance,
            leverage=self.leverage,
            commission=self.commission,
            slippage=self.slippage,
            use_synthetic_ticks=self.use_synthetic_ticks,
        )


class SweepSettings(_SettingsBase):
    """Scheduling defaults for parameter sweeps."""

    slice_ms: float = Field(default=16.0, alias="SWEEP_SLICE_MS")
    risk_pct: float = Field(default=0.01, alias="SWEEP_RISK_PCT")
    output_dir: str = Field(default="artifacts/sweeps", alias="SWEEP_OUTPUT_DIR")

    @field_validator("slice_ms", mode="before")
    @classmethod
    def _coerce_slice(cls, value: float | str | None) -> float:
        if value in (None, ""):
            return 16.0
        try:
            return max(1.0, float(value))
        except (TypeError, ValueError):
            return 16.0


class Settings(BaseModel):
    """Aggregate accessor for domain-specific settings."""

    backtest: BacktestSettings = Field(default_factory=BacktestSettings)
    sweep: SweepSettings = Field(default_factory=SweepSettings)

    model_config = {
        "frozen": True,
    }


def get_settings() -> Settings:
    """Instantiate settings from the current environment."""
    return Settings()


def get_backtest_settings() -> BacktestSettings:
    return get_settings().backtest


def get_sweep_settings() -> SweepSettings:
    return get_settings().sweep


__all__ = [
    "Settings",
    "BacktestSettings",
    "SweepSettings",
    "get_settings",
    "get_backtest_settings",
    "get_sweep_settings",
]
