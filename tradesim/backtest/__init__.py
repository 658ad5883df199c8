"""Backtest simulation engine and its drivers.

Provides the tick expander, the position ledger, metrics, headless scenario
runs, parameter sweeps, a step-through replay session and a synthetic
bar generator.
"""

from tradesim.backtest.engine import BacktestEngine, atr_proxy, bracket_levels
from tradesim.backtest.metrics import BacktestMetrics, calculate
from tradesim.backtest.scenario import ScenarioSummary, run_scenario
from tradesim.backtest.sweeps import (
    SweepOrchestrator,
    SweepProgress,
    SweepReport,
    SweepResult,
    Variation,
    build_variations,
)
from tradesim.backtest.synthetic import dream_bars

__all__ = [
    "BacktestEngine",
    "BacktestMetrics",
    "ScenarioSummary",
    "SweepOrchestrator",
    "SweepProgress",
    "SweepReport",
    "SweepResult",
    "Variation",
    "atr_proxy",
    "bracket_levels",
    "build_variations",
    "calculate",
    "dream_bars",
    "run_scenario",
]
