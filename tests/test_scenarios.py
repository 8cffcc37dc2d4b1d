from config import STRATEGIES
from scenarios import clone_request, compare_strategies, summary_frame


def test_clone_request_leaves_original_untouched(make_request):
    request = make_request()
    clone = clone_request(request, strategy="BUCKET", annual_spend=1)
    assert clone.strategy == "BUCKET" and clone.annual_spend == 1
    assert request.strategy == "CONSERVATIVE" and request.annual_spend == 30_000


def test_compare_all_strategies(make_request):
    results = compare_strategies(make_request(num_simulations=60, time_horizon=6))
    assert list(results) == list(STRATEGIES)
    assert results["BUCKET"].display_allocation["bond"] == 0.0
    assert results["AGGRESSIVE"].display_allocation["stock"] == 0.70
    frame = summary_frame(results)
    assert list(frame.index) == list(STRATEGIES)
    assert frame.loc["CONSERVATIVE", "label"] == "60/40 Split"
    assert frame["success_rate"].between(0, 100).all()


def test_compare_subset(make_request):
    results = compare_strategies(make_request(num_simulations=20, time_horizon=3), strategies=["CUSTOM"])
    assert list(results) == ["CUSTOM"]
    assert results["CUSTOM"].strategy == "CUSTOM"
