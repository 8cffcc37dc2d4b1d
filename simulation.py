import logging
import math
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field, replace
from datetime import date
from typing import List, Optional

import numpy as np
import pandas as pd

from assumptions import CorrelationModel, real_assumptions
from audit import build_audit_log, select_representative_runs
from config import (DEPLETION_THRESHOLD, FRICTION_RATE, NUM_SIMULATIONS, PERCENTILES,
                    STRATEGIES, SUCCESS_EPSILON, WORKERS)
from errors import InvalidRequestError, SimulationCancelled
from returns import AnnualReturn, ReturnGenerator
from strategies import display_allocation, initial_state, simulate_year, target_weights

logger = logging.getLogger(__name__)


@dataclass
class SimulationRequest:
    initial_cash: float
    initial_investments: float
    annual_spend: float          # real, constant through the horizon
    time_horizon: int            # years
    inflation_rate: float        # %/yr, deflates the nominal assumptions
    management_fee: float        # %/yr on stock + bond
    custom_stock_allocation: float = 50   # % stock, CUSTOM only
    strategy: str = "BUCKET"
    num_simulations: int = NUM_SIMULATIONS
    seed: Optional[int] = None
    workers: Optional[int] = None
    friction_rate: float = FRICTION_RATE
    start_year: Optional[int] = None

    @property
    def start_total(self) -> float:
        return self.initial_cash + self.initial_investments

    def weights(self) -> tuple[float, float]:
        return target_weights(self.strategy, self.custom_stock_allocation)

    def with_overrides(self, **overrides) -> "SimulationRequest":
        return replace(self, **overrides)

    def to_dict(self) -> dict:
        return asdict(self)

    def validate(self) -> "SimulationRequest":
        if isinstance(self.time_horizon, bool) or not isinstance(self.time_horizon, (int, np.integer)):
            raise InvalidRequestError("time_horizon", "must be a whole number of years")
        if self.time_horizon <= 0:
            raise InvalidRequestError("time_horizon", "must be greater than zero")
        for name in ("initial_cash", "initial_investments", "annual_spend"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidRequestError(name, f"must be a non-negative amount, got {value!r}")
        if not 0 <= self.custom_stock_allocation <= 100:
            raise InvalidRequestError("custom_stock_allocation", "must be between 0 and 100")
        if self.strategy not in STRATEGIES:
            raise InvalidRequestError("strategy", f"expected one of {STRATEGIES}, got {self.strategy!r}")
        if not math.isfinite(self.inflation_rate) or self.inflation_rate <= -100:
            raise InvalidRequestError("inflation_rate", "must be above -100%")
        if not 0 <= self.management_fee <= 100:
            raise InvalidRequestError("management_fee", "must be between 0 and 100")
        if self.num_simulations < 1:
            raise InvalidRequestError("num_simulations", "need at least one run")
        if not 0 <= self.friction_rate < 1:
            raise InvalidRequestError("friction_rate", "must be in [0, 1)")
        if self.workers is not None and self.workers < 1:
            raise InvalidRequestError("workers", "must be at least 1")
        return self


@dataclass
class SimulationRun:
    id: int
    final_balance: float
    trajectory: np.ndarray        # portfolio total at the end of each year
    returns: np.ndarray           # (years, 3) stock/bond/cash real returns that produced it
    volatility: float = 0.0       # std of the run's yearly asset performance

    @property
    def returns_sequence(self) -> List[AnnualReturn]:
        return [AnnualReturn.from_row(r) for r in self.returns]


@dataclass(frozen=True)
class ChartPoint:
    year: int
    p10: float
    p25: float
    p50: float


# band name -> ChartPoint field
BAND_FIELDS = {"downturn": "p10", "below_average": "p25", "average": "p50"}


@dataclass
class SimulationResult:
    percentile_curve: List[ChartPoint]
    audit_logs: dict                     # band -> list[AuditRow]
    success_rate: float                  # %
    final_median_value: float
    volatility: float                    # %, mean of per-run yearly std
    display_allocation: dict
    representative_ids: dict = field(default_factory=dict)
    depleted_count: int = 0
    num_simulations: int = 0
    strategy: str = ""
    start_total: float = 0.0

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "year": [p.year for p in self.percentile_curve],
            **{band: [getattr(p, f) for p in self.percentile_curve] for band, f in BAND_FIELDS.items()},
        })


@dataclass
class MonteCarloBatch:
    """All runs of one request. `columns[t]` holds every run's total at the end of year t+1."""
    columns: np.ndarray       # (years, n)
    returns: np.ndarray       # (n, years, 3)
    finals: np.ndarray        # (n,)
    volatilities: np.ndarray  # (n,)

    @property
    def size(self) -> int:
        return len(self.finals)

    def run(self, run_id: int) -> SimulationRun:
        return SimulationRun(
            id=int(run_id),
            final_balance=float(self.finals[run_id]),
            trajectory=self.columns[:, run_id].copy(),
            returns=self.returns[run_id].copy(),
            volatility=float(self.volatilities[run_id]),
        )


def run_path(request: SimulationRequest, generator: ReturnGenerator, rng: np.random.Generator,
             run_id: int = 0, weights: tuple = None) -> SimulationRun:
    """Simulate one independent scenario over the whole horizon."""
    weights = weights or request.weights()
    years = request.time_horizon
    returns = generator.draw_sequence(rng, years)
    state = initial_state(request.strategy, request.start_total, request.annual_spend, weights)

    trajectory = np.zeros(years)
    performance = []
    prev_balance = request.start_total
    for y in range(years):
        outcome = simulate_year(state, AnnualReturn.from_row(returns[y]), request.strategy,
                                weights, request.management_fee, request.friction_rate)
        state = outcome.next_state
        total = state.total
        # withdrawal added back so the figure reflects the assets, not the spending
        if prev_balance > DEPLETION_THRESHOLD:
            performance.append((total + outcome.withdrawal) / prev_balance - 1)
        trajectory[y] = total
        prev_balance = total

    vol = float(np.std(performance)) if performance else 0.0
    return SimulationRun(id=run_id, final_balance=float(trajectory[-1]), trajectory=trajectory,
                         returns=returns, volatility=vol)


def _run_chunk(request, generator, weights, seeds, first_id=0, cancel_event=None):
    n, years = len(seeds), request.time_horizon
    trajectories = np.zeros((n, years))
    returns = np.zeros((n, years, 3))
    finals = np.zeros(n)
    vols = np.zeros(n)
    for i, seed in enumerate(seeds):
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled("batch superseded")
        run = run_path(request, generator, np.random.default_rng(seed), first_id + i, weights)
        trajectories[i] = run.trajectory
        returns[i] = run.returns
        finals[i] = run.final_balance
        vols[i] = run.volatility
    return trajectories, returns, finals, vols


def _chunk_bounds(n: int, workers: int) -> List[tuple]:
    if workers <= 1:
        return [(0, n)]
    size = max(1, math.ceil(n / (workers * 4)))
    return [(lo, min(n, lo + size)) for lo in range(0, n, size)]


def run_monte_carlo(request: SimulationRequest, generator: ReturnGenerator, cancel_event=None) -> MonteCarloBatch:
    """
    Run `request.num_simulations` independent paths. Run k always draws from
    child k of SeedSequence(request.seed), so a seeded batch gives the same
    numbers whatever the worker count.
    """
    n, years = request.num_simulations, request.time_horizon
    workers = request.workers or WORKERS
    weights = request.weights()
    seeds = np.random.SeedSequence(request.seed).spawn(n)

    columns = np.zeros((years, n))
    returns = np.zeros((n, years, 3))
    finals = np.zeros(n)
    vols = np.zeros(n)

    def store(lo, hi, chunk):
        trajectories, chunk_returns, chunk_finals, chunk_vols = chunk
        columns[:, lo:hi] = trajectories.T
        returns[lo:hi] = chunk_returns
        finals[lo:hi] = chunk_finals
        vols[lo:hi] = chunk_vols
        logger.debug("runs %d-%d of %d done", lo, hi - 1, n)

    bounds = _chunk_bounds(n, workers)
    if len(bounds) == 1:
        store(0, n, _run_chunk(request, generator, weights, seeds, 0, cancel_event))
    else:
        with ProcessPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(_run_chunk, request, generator, weights, seeds[lo:hi], lo): (lo, hi)
                       for lo, hi in bounds}
            for future in as_completed(futures):
                if cancel_event is not None and cancel_event.is_set():
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise SimulationCancelled("batch superseded")
                lo, hi = futures[future]
                store(lo, hi, future.result())

    return MonteCarloBatch(columns=columns, returns=returns, finals=finals, volatilities=vols)


def _percentile_index(n: int, pct: float) -> int:
    return min(n - 1, int(math.floor(n * pct)))


def percentile_curve(columns: np.ndarray, start_total: float, start_year: int) -> List[ChartPoint]:
    """Pointwise p10/p25/p50 per year, with year 0 pinned to the starting total."""
    n = columns.shape[1]
    ordered = np.sort(columns, axis=1)
    idx = [_percentile_index(n, PERCENTILES[band]) for band in BAND_FIELDS]
    curve = [ChartPoint(start_year, start_total, start_total, start_total)]
    for t, row in enumerate(ordered, start=1):
        curve.append(ChartPoint(start_year + t, *(float(row[i]) for i in idx)))
    return curve


def summary_stats(batch: MonteCarloBatch) -> dict:
    n = batch.size
    depleted = int(np.count_nonzero(batch.finals <= SUCCESS_EPSILON))
    ordered = np.sort(batch.finals)
    return {
        "success_rate": (n - depleted) / n * 100.0,
        "depleted_count": depleted,
        "final_median_value": float(ordered[_percentile_index(n, 0.50)]),
        "volatility": float(np.mean(batch.volatilities)) * 100.0,
    }


def run_simulation(request: SimulationRequest, correlation: CorrelationModel = None,
                   cancel_event=None) -> SimulationResult:
    request.validate()
    started = time.perf_counter()
    start_year = date.today().year if request.start_year is None else request.start_year
    weights = request.weights()
    generator = ReturnGenerator.from_assumptions(real_assumptions(request.inflation_rate), correlation)
    logger.info("Simulating %s: %d runs x %d years", request.strategy, request.num_simulations, request.time_horizon)

    batch = run_monte_carlo(request, generator, cancel_event)
    stats = summary_stats(batch)
    curve = percentile_curve(batch.columns, request.start_total, start_year)

    chosen = select_representative_runs(batch.finals)
    audit_logs = {}
    for band, run_id in chosen.items():
        audit_logs[band] = build_audit_log(request, batch.run(run_id).returns_sequence, start_year)
        logger.debug("band %s -> run %d (final %.2f)", band, run_id, batch.finals[run_id])

    logger.info("%s done in %.2fs: success %.1f%%, median final %.0f",
                request.strategy, time.perf_counter() - started,
                stats["success_rate"], stats["final_median_value"])
    return SimulationResult(
        percentile_curve=curve,
        audit_logs=audit_logs,
        success_rate=stats["success_rate"],
        final_median_value=stats["final_median_value"],
        volatility=stats["volatility"],
        display_allocation=display_allocation(request.strategy, request.start_total, request.annual_spend, weights),
        representative_ids=chosen,
        depleted_count=stats["depleted_count"],
        num_simulations=request.num_simulations,
        strategy=request.strategy,
        start_total=request.start_total,
    )
