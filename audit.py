"""
Turn percentile bands into something a person can check line by line.

A percentile curve is pointwise, so no single run *is* the 25th percentile.
For each band we pick one concrete run by rank of its final balance (stable
sort, so ties resolve to the lower run id) and replay its stored returns
through the same year transition to get a ledger. Ranking on the final
balance keeps the three picks ordered downturn <= below average <= average;
a closest-trajectory search would follow the curve more tightly early on but
gives no such ordering and costs a pass over every run per band.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from config import PERCENTILES
from returns import AnnualReturn
from strategies import initial_state, simulate_year

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRow:
    year: int
    start_cash: float
    start_stock: float
    start_bond: float
    stock_return: float
    bond_return: float
    cash_return: float
    growth: float
    fees: float
    action: str
    withdrawal: float
    end_total: float
    friction: float = 0.0


def select_representative_runs(finals: Sequence[float]) -> dict:
    """band -> run id, using index floor(n * pct) into the runs sorted by final balance."""
    finals = np.asarray(finals, dtype=float)
    n = len(finals)
    order = np.argsort(finals, kind="stable")
    chosen = {band: int(order[min(n - 1, int(math.floor(n * pct)))]) for band, pct in PERCENTILES.items()}
    logger.debug("representative runs: %s", chosen)
    return chosen


def build_audit_log(request, returns_sequence: Sequence[AnnualReturn], start_year: int = 0) -> List[AuditRow]:
    """
    Replay `returns_sequence` from the request's initial allocation, one row
    per year. Deterministic: end totals match the trajectory the run recorded.
    """
    weights = request.weights()
    state = initial_state(request.strategy, request.start_total, request.annual_spend, weights)
    rows = []
    for year, returns in enumerate(returns_sequence, start=1):
        outcome = simulate_year(state, returns, request.strategy, weights,
                                request.management_fee, request.friction_rate)
        rows.append(AuditRow(
            year=start_year + year,
            start_cash=state.cash,
            start_stock=state.stock,
            start_bond=state.bond,
            stock_return=returns.stock,
            bond_return=returns.bond,
            cash_return=returns.cash,
            growth=outcome.growth,
            fees=outcome.fees,
            action=outcome.action,
            withdrawal=outcome.withdrawal,
            end_total=outcome.next_state.total,
            friction=outcome.friction,
        ))
        state = outcome.next_state
    return rows


def replay_trajectory(request, returns_sequence: Sequence[AnnualReturn]) -> np.ndarray:
    return np.array([row.end_total for row in build_audit_log(request, returns_sequence)])
