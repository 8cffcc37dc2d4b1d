import sys
from pathlib import Path

import pytest


def _insert_repo_root() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()

from simulation import SimulationRequest  # noqa: E402


@pytest.fixture
def make_request():
    """Small, seeded request; override any field by keyword."""

    def _make(**overrides):
        base = dict(
            initial_cash=10_000,
            initial_investments=500_000,
            annual_spend=30_000,
            time_horizon=10,
            inflation_rate=3.0,
            management_fee=0.3,
            custom_stock_allocation=50,
            strategy="CONSERVATIVE",
            num_simulations=200,
            seed=7,
            workers=1,
            start_year=2030,
        )
        base.update(overrides)
        return SimulationRequest(**base)

    return _make
