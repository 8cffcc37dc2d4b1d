import math
import threading

import numpy as np
import pytest

from assumptions import real_assumptions
from audit import replay_trajectory
from errors import InvalidRequestError, SimulationCancelled
from returns import ReturnGenerator
from simulation import (BAND_FIELDS, SimulationRequest, percentile_curve, run_monte_carlo,
                        run_path, run_simulation)


def _generator(request):
    return ReturnGenerator.from_assumptions(real_assumptions(request.inflation_rate))


@pytest.mark.parametrize("overrides, field", [
    ({"time_horizon": 0}, "time_horizon"),
    ({"time_horizon": -3}, "time_horizon"),
    ({"time_horizon": 2.5}, "time_horizon"),
    ({"initial_cash": -1}, "initial_cash"),
    ({"initial_investments": -0.01}, "initial_investments"),
    ({"annual_spend": -100}, "annual_spend"),
    ({"annual_spend": float("nan")}, "annual_spend"),
    ({"custom_stock_allocation": 101}, "custom_stock_allocation"),
    ({"custom_stock_allocation": -5}, "custom_stock_allocation"),
    ({"strategy": "MOONSHOT"}, "strategy"),
    ({"inflation_rate": -100}, "inflation_rate"),
    ({"management_fee": -0.5}, "management_fee"),
    ({"num_simulations": 0}, "num_simulations"),
    ({"friction_rate": 1.0}, "friction_rate"),
    ({"workers": 0}, "workers"),
])
def test_invalid_requests_are_rejected(make_request, overrides, field):
    with pytest.raises(InvalidRequestError) as excinfo:
        run_simulation(make_request(**overrides))
    assert excinfo.value.field == field


def test_run_simulation_shape_and_ranges(make_request):
    request = make_request()
    result = run_simulation(request)
    curve = result.percentile_curve
    assert len(curve) == request.time_horizon + 1
    assert [p.year for p in curve] == list(range(2030, 2030 + request.time_horizon + 1))
    assert curve[0].p10 == curve[0].p25 == curve[0].p50 == request.start_total
    for point in curve:
        assert 0 <= point.p10 <= point.p25 <= point.p50
    assert 0 <= result.success_rate <= 100
    assert result.depleted_count == round((100 - result.success_rate) * request.num_simulations / 100)
    assert result.volatility > 0
    assert result.display_allocation == {"stock": 0.6, "bond": 0.4, "cash": 0.0}
    assert set(result.audit_logs) == set(BAND_FIELDS)
    assert all(len(rows) == request.time_horizon for rows in result.audit_logs.values())


def test_seeded_runs_are_reproducible(make_request):
    a = run_simulation(make_request(strategy="BUCKET"))
    b = run_simulation(make_request(strategy="BUCKET"))
    assert a.percentile_curve == b.percentile_curve
    assert a.representative_ids == b.representative_ids
    assert a.success_rate == b.success_rate
    assert a.volatility == b.volatility


def test_different_seeds_differ(make_request):
    a = run_simulation(make_request(seed=1))
    b = run_simulation(make_request(seed=2))
    assert a.percentile_curve != b.percentile_curve


def test_worker_count_does_not_change_results(make_request):
    request = make_request(strategy="AGGRESSIVE", num_simulations=120)
    inline = run_monte_carlo(request, _generator(request))
    pooled = run_monte_carlo(request.with_overrides(workers=2), _generator(request))
    np.testing.assert_array_equal(inline.columns, pooled.columns)
    np.testing.assert_array_equal(inline.returns, pooled.returns)
    np.testing.assert_array_equal(inline.volatilities, pooled.volatilities)


def test_runs_use_independent_streams(make_request):
    request = make_request(num_simulations=50)
    batch = run_monte_carlo(request, _generator(request))
    assert len({tuple(batch.returns[i, 0]) for i in range(batch.size)}) == batch.size


@pytest.mark.parametrize("strategy", ["BUCKET", "CONSERVATIVE", "AGGRESSIVE", "CUSTOM"])
def test_replay_reproduces_recorded_trajectory(make_request, strategy):
    request = make_request(strategy=strategy, custom_stock_allocation=35, annual_spend=45_000, time_horizon=25)
    batch = run_monte_carlo(request, _generator(request))
    for run_id in (0, 17, batch.size - 1):
        run = batch.run(run_id)
        np.testing.assert_array_equal(replay_trajectory(request, run.returns_sequence), run.trajectory)
        assert run.final_balance == run.trajectory[-1]


def test_audit_ledger_ends_at_representative_final_balance(make_request):
    request = make_request(strategy="BUCKET")
    result = run_simulation(request)
    batch = run_monte_carlo(request, _generator(request))
    for band, run_id in result.representative_ids.items():
        rows = result.audit_logs[band]
        assert rows[-1].end_total == batch.finals[run_id]
        assert rows[0].year == 2031
        assert rows[0].start_cash == pytest.approx(60_000)
        assert rows[0].start_bond == 0.0


def test_representative_runs_are_ordered(make_request):
    request = make_request()
    result = run_simulation(request)
    batch = run_monte_carlo(request, _generator(request))
    ids = result.representative_ids
    assert batch.finals[ids["downturn"]] <= batch.finals[ids["below_average"]] <= batch.finals[ids["average"]]
    ordered = np.sort(batch.finals)
    assert batch.finals[ids["average"]] == ordered[request.num_simulations // 2]
    assert result.final_median_value == ordered[request.num_simulations // 2]


def test_every_run_depletes(make_request):
    request = make_request(initial_cash=0, initial_investments=1_000, annual_spend=1_000_000)
    result = run_simulation(request)
    assert result.success_rate == 0.0
    assert result.depleted_count == request.num_simulations
    assert result.final_median_value == 0.0
    for point in result.percentile_curve[1:]:
        assert point.p10 == point.p25 == point.p50 == 0.0
    rows = result.audit_logs["average"]
    assert rows[1].action == "Portfolio Depleted."
    assert all(r.end_total == 0.0 for r in rows)


def test_nothing_spent_never_depletes(make_request):
    result = run_simulation(make_request(annual_spend=0, strategy="CUSTOM", custom_stock_allocation=20))
    assert result.success_rate == 100.0


def test_percentile_curve_reads_sorted_columns():
    columns = np.array([np.arange(100, 0, -1, dtype=float), np.zeros(100)])
    curve = percentile_curve(columns, 500.0, 2000)
    assert curve[0].year == 2000 and curve[0].p50 == 500.0
    assert (curve[1].p10, curve[1].p25, curve[1].p50) == (11.0, 26.0, 51.0)
    assert (curve[2].p10, curve[2].p25, curve[2].p50) == (0.0, 0.0, 0.0)


def test_single_run_batch(make_request):
    result = run_simulation(make_request(num_simulations=1))
    assert result.representative_ids == {"downturn": 0, "below_average": 0, "average": 0}


def test_run_path_volatility_is_zero_for_flat_markets(make_request):
    request = make_request(strategy="CONSERVATIVE", annual_spend=0)

    class _Flat:
        def draw_sequence(self, rng, years):
            return np.zeros((years, 3))

    run = run_path(request, _Flat(), np.random.default_rng(0))
    assert run.volatility == pytest.approx(0.0, abs=1e-12)
    assert math.isclose(run.trajectory[0], request.start_total * (1 - 0.003) * (1 - 0.0005))


def test_cancelled_batch_raises(make_request):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SimulationCancelled):
        run_simulation(make_request(), cancel_event=cancel)


def test_start_year_defaults_to_current_year(make_request):
    from datetime import date

    result = run_simulation(make_request(start_year=None, num_simulations=5, time_horizon=2))
    assert result.percentile_curve[0].year == date.today().year


def test_request_round_trips_through_dict(make_request):
    request = make_request()
    assert SimulationRequest(**request.to_dict()) == request
