from __future__ import annotations

from tradesim.backtest.metrics import BacktestMetrics
from tradesim.backtest.replay import WARMUP_BARS, ReplaySession
from tradesim.backtest.sweeps import SweepResult, Variation, evaluate_point, index_signals


def test_cursor_starts_after_warmup(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)
    assert session.cursor == WARMUP_BARS
    assert session.engine.equity_curve == ()


def test_step_processes_speed_bars(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)

    metrics = session.step(speed=5)

    assert session.cursor == WARMUP_BARS + 5
    assert [p.time for p in metrics.equity_curve] == [
        b.time for b in toy_bars[WARMUP_BARS : WARMUP_BARS + 5]
    ]


def test_step_clamps_at_end(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)
    session.step(speed=10_000)
    assert session.finished
    assert session.cursor == len(toy_bars)
    assert len(session.engine.equity_curve) == len(toy_bars) - WARMUP_BARS


def test_warmup_signals_are_never_opened(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)
    while not session.finished:
        session.step(speed=7)
    first_live = toy_bars[WARMUP_BARS].time
    assert session.trades()
    assert all(t.entry_time >= first_live for t in session.trades())


def test_full_replay_matches_single_pass(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)
    while not session.finished:
        metrics = session.step(speed=3)

    expected = evaluate_point(
        toy_bars[WARMUP_BARS:],
        index_signals(toy_signals),
        frictionless,
        Variation(1.0, 2.0),
        risk_pct=0.02,
    )
    assert metrics == expected


def test_apply_sweep_changes_brackets(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)
    session.apply_sweep(SweepResult(1.5, 3.0, BacktestMetrics()))
    assert (session.sl_mult, session.tp_mult) == (1.5, 3.0)

    while not session.finished:
        metrics = session.step(speed=50)
    expected = evaluate_point(
        toy_bars[WARMUP_BARS:],
        index_signals(toy_signals),
        frictionless,
        Variation(1.5, 3.0),
        risk_pct=0.02,
    )
    assert metrics == expected

    session.apply_sweep(None)
    assert (session.sl_mult, session.tp_mult) == (1.0, 2.0)


def test_jump_to_nearest_bar_resets_engine(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)
    session.step(speed=20)

    idx = session.jump_to(toy_bars[200].time + 100)

    assert idx == 200
    assert session.cursor == 200
    assert session.engine.equity_curve == ()
    assert session.trades() == []


def test_jump_to_is_clamped(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless)
    assert session.jump_to(toy_bars[10].time) == WARMUP_BARS
    assert session.jump_to(toy_bars[-1].time + 10**6) == len(toy_bars) - 1


def test_short_series_skips_straight_to_end(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars[:10], toy_signals, frictionless)
    assert session.finished
    assert session.jump_to(toy_bars[3].time) == 9
    assert not session.finished


def test_strategy_selection(frictionless, toy_bars, toy_signals):
    session = ReplaySession(toy_bars, toy_signals, frictionless, strategy_ids=["fade"])
    session.step(speed=len(toy_bars))
    assert session.trades()
    assert {t.setup_origin for t in session.trades()} == {"Fade"}
