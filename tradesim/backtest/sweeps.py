"""SL/TP multiple sweeps over a fixed bar series and signal set.

Each grid point replays the full series on its own engine. Work is split
into wall-clock slices so a host event loop (or UI thread driving the
iterator) regains control between slices and can show progress or cancel.
"""

from __future__ import annotations

import argparse
import asyncio
import itertools
import json
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

import yaml
from loguru import logger

from tradesim.backtest.engine import BacktestEngine, bracket_levels
from tradesim.backtest.frames import load_bars, load_signals
from tradesim.backtest.metrics import BacktestMetrics
from tradesim.core.exceptions import ConfigError, SweepPointError
from tradesim.core.models import BacktestConfig, Bar, Signal
from tradesim.logging_utils import logging_context, setup_logging
from tradesim.settings import get_backtest_settings, get_sweep_settings

DEFAULT_RISK_PCT = 0.01
DEFAULT_SLICE_MS = 16.0


@dataclass(frozen=True)
class Variation:
    sl: float
    tp: float


@dataclass(frozen=True)
class SweepResult:
    sl_mult: float
    tp_mult: float
    metrics: BacktestMetrics

    def as_record(self) -> Dict[str, Any]:
        metrics = self.metrics.as_dict()
        metrics.pop("equity_curve", None)
        return {"sl_mult": self.sl_mult, "tp_mult": self.tp_mult, "metrics": metrics}


@dataclass(frozen=True)
class SweepFailure:
    sl_mult: float
    tp_mult: float
    error: str


@dataclass(frozen=True)
class SweepProgress:
    completed: int
    total: int

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 1.0


@dataclass
class SweepReport:
    results: List[SweepResult] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)
    completed: int = 0
    total: int = 0
    cancelled: bool = False


# -------- Grid helpers --------
def _expand_param_grid(grid: Dict[str, Iterable[Any]]) -> List[Dict[str, Any]]:
    if not grid:
        return [{}]
    keys = list(grid.keys())
    combos = []
    for values in itertools.product(*(grid[k] for k in keys)):
        combos.append(dict(zip(keys, values, strict=True)))
    return combos


def _inclusive_range(start: float, stop: float, step: float) -> List[float]:
    count = int(math.floor((stop - start) / step + 1e-9)) + 1
    return [round(start + i * step, 10) for i in range(max(0, count))]


def build_variations(
    min_sl: float, max_sl: float, min_tp: float, max_tp: float, step: float
) -> List[Variation]:
    """Enumerate the (sl, tp) grid, sl outer, both bounds inclusive."""
    if step <= 0:
        raise ConfigError(f"grid step must be positive, got {step}")
    sls = _inclusive_range(min_sl, max_sl, step)
    tps = _inclusive_range(min_tp, max_tp, step)
    if not sls or not tps:
        raise ConfigError(
            f"empty grid: sl=[{min_sl}, {max_sl}] tp=[{min_tp}, {max_tp}] step={step}"
        )
    return [Variation(sl, tp) for sl in sls for tp in tps]


def variations_from_params(params: Dict[str, Iterable[Any]]) -> List[Variation]:
    """Cartesian product of explicit `sl_mult` / `tp_mult` lists."""
    missing = [k for k in ("sl_mult", "tp_mult") if k not in params]
    if missing:
        raise ConfigError(f"params grid missing keys: {missing}")
    return [
        Variation(float(c["sl_mult"]), float(c["tp_mult"]))
        for c in _expand_param_grid({"sl_mult": params["sl_mult"], "tp_mult": params["tp_mult"]})
    ]


def filter_signals(
    signals: Iterable[Signal], strategy_ids: Optional[Iterable[str]] = None
) -> List[Signal]:
    """Keep signals from the selected strategies; no selection keeps everything."""
    signals = list(signals)
    if not strategy_ids:
        return signals
    wanted = set(strategy_ids)
    return [s for s in signals if s.strategy_id in wanted]


def index_signals(signals: Iterable[Signal]) -> Dict[int, List[Signal]]:
    by_time: Dict[int, List[Signal]] = {}
    for sig in signals:
        by_time.setdefault(sig.time, []).append(sig)
    return by_time


def evaluate_point(
    bars: Sequence[Bar],
    signals_by_time: Dict[int, List[Signal]],
    config: BacktestConfig,
    variation: Variation,
    risk_pct: float = DEFAULT_RISK_PCT,
) -> BacktestMetrics:
    """Replay every bar once with brackets scaled by the variation's multiples."""
    engine = BacktestEngine(config)
    for bar in bars:
        engine.process_candle(bar)
        for sig in signals_by_time.get(bar.time, ()):
            sl, tp = bracket_levels(bar, sig.type, variation.sl, variation.tp)
            engine.open_trade(bar, sig.type, sl, tp, risk_pct, sig.strategy_name)
    return engine.calculate_metrics()


def rank(results: Iterable[SweepResult]) -> List[SweepResult]:
    return sorted(results, key=lambda r: r.metrics.net_profit, reverse=True)


# -------- Orchestrator --------
class SweepOrchestrator:
    """
    Incremental sweep runner.

    Drive it with `iter_progress()` (one yield per slice), `await run()` on
    an asyncio loop, or `run_blocking()`. `cancel()` is honoured between
    slices; the report then holds whatever points finished.
    """

    def __init__(
        self,
        bars: Sequence[Bar],
        signals: Iterable[Signal],
        config: BacktestConfig,
        variations: Sequence[Variation],
        *,
        strategy_ids: Optional[Iterable[str]] = None,
        risk_pct: float = DEFAULT_RISK_PCT,
        slice_ms: float = DEFAULT_SLICE_MS,
        clock: Callable[[], float] = perf_counter,
    ):
        self.bars = list(bars)
        self.config = config
        self.variations = list(variations)
        self.risk_pct = risk_pct
        self.slice_ms = slice_ms
        self._clock = clock
        self._signals_by_time = index_signals(filter_signals(signals, strategy_ids))
        self._results: List[SweepResult] = []
        self._failures: List[SweepFailure] = []
        self._cursor = 0
        self._cancelled = False

    @property
    def total(self) -> int:
        return len(self.variations)

    @property
    def completed(self) -> int:
        return self._cursor

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._cancelled or self._cursor >= self.total

    def cancel(self) -> None:
        self._cancelled = True

    def progress(self) -> SweepProgress:
        return SweepProgress(self._cursor, self.total)

    def _evaluate_next(self) -> None:
        v = self.variations[self._cursor]
        self._cursor += 1
        try:
            metrics = evaluate_point(
                self.bars, self._signals_by_time, self.config, v, self.risk_pct
            )
        except Exception as exc:
            err = SweepPointError(v.sl, v.tp, exc)
            logger.exception("[sweep] point sl={} tp={} failed: {}", v.sl, v.tp, exc)
            self._failures.append(SweepFailure(v.sl, v.tp, str(err)))
            return
        self._results.append(SweepResult(v.sl, v.tp, metrics))

    def run_slice(self) -> SweepProgress:
        """Evaluate grid points until the slice budget is spent (at least one)."""
        started = self._clock()
        while self._cursor < self.total:
            self._evaluate_next()
            if (self._clock() - started) * 1000.0 >= self.slice_ms:
                break
        return self.progress()

    def iter_progress(self) -> Iterator[SweepProgress]:
        while not self.done:
            yield self.run_slice()

    async def run(
        self, on_progress: Optional[Callable[[SweepProgress], Any]] = None
    ) -> SweepReport:
        logger.info(
            "[sweep] starting points={} bars={} slice_ms={}",
            self.total,
            len(self.bars),
            self.slice_ms,
        )
        for progress in self.iter_progress():
            if on_progress is not None:
                on_progress(progress)
            await asyncio.sleep(0)
        return self._finish()

    def run_blocking(
        self, on_progress: Optional[Callable[[SweepProgress], Any]] = None
    ) -> SweepReport:
        for progress in self.iter_progress():
            if on_progress is not None:
                on_progress(progress)
        return self._finish()

    def report(self) -> SweepReport:
        return SweepReport(
            results=rank(self._results),
            failures=list(self._failures),
            completed=self._cursor,
            total=self.total,
            cancelled=self._cancelled,
        )

    def _finish(self) -> SweepReport:
        report = self.report()
        logger.info(
            "[sweep] finished completed={}/{} succeeded={} failed={} cancelled={}",
            report.completed,
            report.total,
            len(report.results),
            len(report.failures),
            report.cancelled,
        )
        return report


# -------- CLI --------
def _load_config(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text())
    if not isinstance(data, dict):
        raise ConfigError("Sweep config must be a mapping")
    return data


def _variations_from_config(cfg: Dict[str, Any]) -> List[Variation]:
    if cfg.get("params"):
        return variations_from_params(cfg["params"])
    grid = cfg.get("grid")
    if not isinstance(grid, dict):
        raise ConfigError("Sweep config needs either 'params' or 'grid'")
    try:
        return build_variations(
            float(grid["min_sl"]),
            float(grid["max_sl"]),
            float(grid["min_tp"]),
            float(grid["max_tp"]),
            float(grid["step"]),
        )
    except KeyError as exc:
        raise ConfigError(f"grid missing key: {exc.args[0]}") from exc


def _backtest_config(cfg: Dict[str, Any]) -> BacktestConfig:
    base = get_backtest_settings().to_config().model_dump()
    base.update(cfg.get("config") or {})
    return BacktestConfig.model_validate(base)


def run_sweep(config_path: Path, *, job_id: str | None = None) -> Dict[str, Any]:
    cfg = _load_config(config_path)
    for key in ("bars", "signals"):
        if key not in cfg:
            raise ConfigError(f"Sweep config missing '{key}'")

    sweep_settings = get_sweep_settings()
    bars = load_bars(Path(cfg["bars"]))
    signals = load_signals(Path(cfg["signals"]))
    variations = _variations_from_config(cfg)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    job_ref = job_id or timestamp
    sweep_dir = Path(cfg.get("output_dir") or sweep_settings.output_dir) / job_ref
    sweep_dir.mkdir(parents=True, exist_ok=True)

    orchestrator = SweepOrchestrator(
        bars,
        signals,
        _backtest_config(cfg),
        variations,
        strategy_ids=cfg.get("strategy_ids"),
        risk_pct=float(cfg.get("risk_pct", sweep_settings.risk_pct)),
        slice_ms=float(cfg.get("slice_ms", sweep_settings.slice_ms)),
    )

    def _log_progress(p: SweepProgress) -> None:
        logger.info("[sweep] progress {}/{} ({:.0%})", p.completed, p.total, p.fraction)

    started = perf_counter()
    with logging_context(run_id=job_ref):
        report = orchestrator.run_blocking(on_progress=_log_progress)

    summary_path = sweep_dir / "summary.jsonl"
    with summary_path.open("w") as handle:
        for rank_idx, result in enumerate(report.results, start=1):
            record = {"rank": rank_idx, **result.as_record()}
            handle.write(json.dumps(record, default=str) + "\n")
    failures_path = sweep_dir / "failures.json"
    failures_path.write_text(
        json.dumps([asdict(f) for f in report.failures], default=str, indent=2)
    )
    duration_ms = (perf_counter() - started) * 1000.0
    logger.info(
        "[sweep] completed job={} dir={} succeeded={} duration_ms={:.0f}",
        job_ref,
        sweep_dir,
        len(report.results),
        duration_ms,
    )
    return {
        "job_id": job_ref,
        "sweep_dir": str(sweep_dir),
        "summary_path": str(summary_path),
        "failures_path": str(failures_path),
        "results": [r.as_record() for r in report.results],
        "failures": [asdict(f) for f in report.failures],
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Run SL/TP parameter sweeps")
    parser.add_argument("--config", required=True, help="Path to YAML sweep definition")
    parser.add_argument("--job-id", default=None, help="Output sub-directory name")
    args = parser.parse_args()
    setup_logging()
    run_sweep(Path(args.config), job_id=args.job_id)


if __name__ == "__main__":
    main()
