from __future__ import annotations

import json
from itertools import count
from pathlib import Path

import pandas as pd
import pytest
import yaml

from tradesim.backtest import sweeps
from tradesim.backtest.engine import BacktestEngine, bracket_levels
from tradesim.core.exceptions import ConfigError


def _fake_clock(step_ms: float):
    ticks = count()
    return lambda: next(ticks) * step_ms / 1000.0


def test_expand_param_grid():
    grid = {"a": [1, 2], "b": ["x"]}
    combos = sweeps._expand_param_grid(grid)
    assert combos == [{"a": 1, "b": "x"}, {"a": 2, "b": "x"}]


def test_build_variations_is_inclusive_and_sl_major():
    grid = sweeps.build_variations(1.0, 2.0, 1.0, 3.0, 1.0)
    assert [(v.sl, v.tp) for v in grid] == [
        (1.0, 1.0),
        (1.0, 2.0),
        (1.0, 3.0),
        (2.0, 1.0),
        (2.0, 2.0),
        (2.0, 3.0),
    ]


def test_build_variations_fractional_step_hits_upper_bound():
    grid = sweeps.build_variations(0.5, 1.5, 1.0, 1.0, 0.1)
    assert [v.sl for v in grid][-1] == 1.5
    assert len(grid) == 11


@pytest.mark.parametrize("args", [(1, 2, 1, 2, 0), (1, 2, 1, 2, -0.5), (3, 2, 1, 2, 0.5)])
def test_build_variations_rejects_bad_grids(args):
    with pytest.raises(ConfigError):
        sweeps.build_variations(*args)


def test_variations_from_params():
    grid = sweeps.variations_from_params({"sl_mult": [1, 2], "tp_mult": [3]})
    assert [(v.sl, v.tp) for v in grid] == [(1.0, 3.0), (2.0, 3.0)]
    with pytest.raises(ConfigError):
        sweeps.variations_from_params({"sl_mult": [1]})


def test_filter_signals_by_strategy(toy_signals):
    kept = sweeps.filter_signals(toy_signals, ["trend"])
    assert kept and all(s.strategy_id == "trend" for s in kept)
    assert sweeps.filter_signals(toy_signals, None) == list(toy_signals)


def test_evaluate_point_matches_manual_replay(frictionless, toy_bars, toy_signals):
    variation = sweeps.Variation(1.5, 2.5)
    by_time = sweeps.index_signals(toy_signals)

    engine = BacktestEngine(frictionless)
    for bar in toy_bars:
        engine.process_candle(bar)
        for sig in by_time.get(bar.time, ()):
            sl, tp = bracket_levels(bar, sig.type, 1.5, 2.5)
            engine.open_trade(bar, sig.type, sl, tp, 0.01, sig.strategy_name)

    result = sweeps.evaluate_point(toy_bars, by_time, frictionless, variation)
    assert result == engine.calculate_metrics()


def test_results_ranked_by_net_profit(frictionless, toy_bars, toy_signals):
    grid = sweeps.build_variations(0.5, 2.0, 1.0, 3.0, 0.5)
    orch = sweeps.SweepOrchestrator(toy_bars, toy_signals, frictionless, grid)

    report = orch.run_blocking()

    assert report.completed == report.total == len(grid)
    assert len(report.results) == len(grid)
    assert not report.failures
    profits = [r.metrics.net_profit for r in report.results]
    assert all(a >= b for a, b in zip(profits, profits[1:]))


def test_progress_is_reported_per_slice(frictionless, toy_bars, toy_signals):
    grid = sweeps.build_variations(1.0, 2.0, 1.0, 2.0, 0.5)
    # every clock read advances 10ms, so a 16ms slice fits two points
    orch = sweeps.SweepOrchestrator(
        toy_bars, toy_signals, frictionless, grid, slice_ms=16.0, clock=_fake_clock(10.0)
    )

    events = list(orch.iter_progress())

    assert [e.completed for e in events] == [2, 4, 6, 8, 9]
    assert all(e.total == 9 for e in events)
    assert events[-1].fraction == 1.0


def test_slice_always_makes_progress(frictionless, toy_bars, toy_signals):
    grid = sweeps.build_variations(1.0, 1.0, 1.0, 3.0, 1.0)
    orch = sweeps.SweepOrchestrator(
        toy_bars, toy_signals, frictionless, grid, slice_ms=0.0, clock=_fake_clock(0.0)
    )
    assert [e.completed for e in orch.iter_progress()] == [1, 2, 3]


def test_cancel_between_slices(frictionless, toy_bars, toy_signals):
    grid = sweeps.build_variations(1.0, 3.0, 1.0, 3.0, 1.0)
    orch = sweeps.SweepOrchestrator(
        toy_bars, toy_signals, frictionless, grid, slice_ms=1.0, clock=_fake_clock(5.0)
    )

    seen = []
    for progress in orch.iter_progress():
        seen.append(progress)
        if progress.completed >= 3:
            orch.cancel()

    report = orch.report()
    assert report.cancelled is True
    assert report.completed == 3 < report.total
    assert len(report.results) == 3


def test_failed_point_is_recorded_and_sweep_continues(
    monkeypatch, frictionless, toy_bars, toy_signals
):
    real = sweeps.evaluate_point

    def flaky(bars, by_time, config, variation, risk_pct=0.01):
        if variation.sl == 2.0:
            raise ValueError("boom")
        return real(bars, by_time, config, variation, risk_pct)

    monkeypatch.setattr(sweeps, "evaluate_point", flaky)
    grid = sweeps.build_variations(1.0, 3.0, 1.0, 2.0, 1.0)
    report = sweeps.SweepOrchestrator(toy_bars, toy_signals, frictionless, grid).run_blocking()

    assert report.completed == report.total == 6
    assert len(report.results) == 4
    assert {(f.sl_mult, f.tp_mult) for f in report.failures} == {(2.0, 1.0), (2.0, 2.0)}
    assert all("boom" in f.error for f in report.failures)


def test_strategy_filter_limits_trades(frictionless, toy_bars, toy_signals):
    grid = [sweeps.Variation(1.0, 2.0)]
    everything = sweeps.SweepOrchestrator(toy_bars, toy_signals, frictionless, grid)
    longs_only = sweeps.SweepOrchestrator(
        toy_bars, toy_signals, frictionless, grid, strategy_ids=["trend"]
    )
    all_trades = everything.run_blocking().results[0].metrics.total_trades
    long_trades = longs_only.run_blocking().results[0].metrics.total_trades
    assert 0 < long_trades < all_trades


@pytest.mark.anyio
async def test_async_run_yields_progress(frictionless, toy_bars, toy_signals):
    grid = sweeps.build_variations(1.0, 2.0, 1.0, 2.0, 1.0)
    orch = sweeps.SweepOrchestrator(
        toy_bars, toy_signals, frictionless, grid, slice_ms=1.0, clock=_fake_clock(5.0)
    )
    events = []

    report = await orch.run(on_progress=events.append)

    assert [e.completed for e in events] == [1, 2, 3, 4]
    assert report.completed == 4
    assert len(report.results) == 4


def test_run_sweep_writes_ranked_summary(tmp_path: Path, toy_bars, toy_signals):
    bars_path = tmp_path / "bars.csv"
    pd.DataFrame([b.model_dump() for b in toy_bars]).to_csv(bars_path, index=False)
    signals_path = tmp_path / "signals.json"
    signals_path.write_text(
        json.dumps([s.model_dump(mode="json", by_alias=True) for s in toy_signals])
    )
    cfg = {
        "bars": str(bars_path),
        "signals": str(signals_path),
        "output_dir": str(tmp_path / "sweeps"),
        "config": {"initial_balance": 50_000, "commission": 0.0, "slippage": 0.0},
        "grid": {"min_sl": 1.0, "max_sl": 2.0, "min_tp": 1.0, "max_tp": 2.0, "step": 1.0},
        "strategy_ids": ["trend", "fade"],
    }
    cfg_path = tmp_path / "sweep.yml"
    cfg_path.write_text(yaml.safe_dump(cfg))

    result = sweeps.run_sweep(cfg_path, job_id="job-1")

    summary_path = Path(result["summary_path"])
    assert summary_path.parent.name == "job-1"
    lines = [json.loads(line) for line in summary_path.read_text().splitlines()]
    assert [rec["rank"] for rec in lines] == [1, 2, 3, 4]
    profits = [rec["metrics"]["net_profit"] for rec in lines]
    assert profits == sorted(profits, reverse=True)
    assert "equity_curve" not in lines[0]["metrics"]
    assert result["failures"] == []


def test_run_sweep_rejects_bad_inputs(tmp_path: Path):
    cfg_path = tmp_path / "sweep.yml"
    cfg_path.write_text(yaml.safe_dump({"signals": "y.json"}))
    with pytest.raises(ConfigError):
        sweeps.run_sweep(cfg_path)

    cfg_path.write_text(yaml.safe_dump({"bars": str(tmp_path / "missing.csv"), "signals": "y.json"}))
    with pytest.raises(FileNotFoundError):
        sweeps.run_sweep(cfg_path)

    cfg_path.write_text("- not a mapping")
    with pytest.raises(ConfigError):
        sweeps.run_sweep(cfg_path)
