import logging

import pandas as pd

from config import STRATEGIES, STRATEGY_LABELS
from simulation import SimulationRequest, run_simulation

logger = logging.getLogger(__name__)


def clone_request(request: SimulationRequest, **overrides) -> SimulationRequest:
    return request.with_overrides(**overrides)


def compare_strategies(request: SimulationRequest, strategies=None) -> dict:
    """
    strategies: iterable of strategy names (default: all four)
    returns: dict strategy -> SimulationResult, all run on the same seed
    """
    res = {}
    for strategy in strategies or STRATEGIES:
        logger.info("Comparing strategy %s", strategy)
        res[strategy] = run_simulation(clone_request(request, strategy=strategy))
    return res


def summary_frame(results: dict) -> pd.DataFrame:
    rows = []
    for strategy, r in results.items():
        rows.append({
            "strategy": strategy,
            "label": STRATEGY_LABELS.get(strategy, strategy),
            "success_rate": r.success_rate,
            "final_median_value": r.final_median_value,
            "volatility": r.volatility,
        })
    return pd.DataFrame(rows).set_index("strategy")
