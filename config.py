import os

APP_NAME = "Strategy Lab: Retirement Monte Carlo"

# Request defaults (amounts in today's money; rates in percent)
DEFAULTS = {
    "initial_cash": 10_000,
    "initial_investments": 500_000,
    "annual_spend": 30_000,
    "time_horizon": 30,
    "inflation_rate": 3.0,              # %/yr
    "management_fee": 0.30,             # %/yr on stock + bond
    "custom_stock_allocation": 50,      # % stock, CUSTOM only
    "strategy": "BUCKET",
}

# Long-run nominal assumptions, deflated per request by the inflation rate
NOMINAL_ASSUMPTIONS = {
    "stock": {"mean": 0.085, "std_dev": 0.17},
    "bond": {"mean": 0.040, "std_dev": 0.05},
    "cash": {"mean": 0.025, "std_dev": 0.015},
}

ASSET_CLASSES = ("stock", "bond", "cash")

# Stock, bond, cash
CORRELATION_MATRIX = (
    (1.00, -0.15, 0.05),
    (-0.15, 1.00, 0.15),
    (0.05, 0.15, 1.00),
)

# stock/bond target weights for the fixed-allocation strategies
STRATEGY_WEIGHTS = {
    "CONSERVATIVE": (0.60, 0.40),
    "AGGRESSIVE": (0.70, 0.30),
}

STRATEGIES = ("BUCKET", "CONSERVATIVE", "AGGRESSIVE", "CUSTOM")

STRATEGY_LABELS = {
    "BUCKET": "Bucket Strategy",
    "CONSERVATIVE": "60/40 Split",
    "AGGRESSIVE": "70/30 Split",
    "CUSTOM": "Custom Allocation",
}

# Spreads, commissions and tax drag on every sale or rebalance
FRICTION_RATE = 0.0005

CASH_BUFFER_YEARS = 2
DEPLETION_THRESHOLD = 0.01
SUCCESS_EPSILON = 1.0
LOG_FLOOR = 1e-4

NUM_SIMULATIONS = 10_000
PERCENTILES = {
    "downturn": 0.10,
    "below_average": 0.25,
    "average": 0.50,
}

LOG_LEVEL = os.environ.get("RETIREMENT_LOG_LEVEL", "INFO")
WORKERS = int(os.environ.get("RETIREMENT_WORKERS", "1"))
