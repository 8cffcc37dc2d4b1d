"""
Withdrawal strategies and the one-year portfolio state transition.

Everything is in real (today's) money: `spend` is the same number every year
because the returns fed in are already deflated.

BUCKET keeps CASH_BUFFER_YEARS of spending in cash, refills it from stocks
only after an up year and otherwise sells stock only when the buffer is empty.
The fixed-allocation strategies (CONSERVATIVE, AGGRESSIVE, CUSTOM) pool
everything, withdraw, pay the rebalancing drag and reset to target weights.
"""
from dataclasses import dataclass

from config import (CASH_BUFFER_YEARS, DEPLETION_THRESHOLD, FRICTION_RATE,
                    STRATEGIES, STRATEGY_WEIGHTS)
from errors import InvalidRequestError
from returns import AnnualReturn

DEPLETED = "Portfolio Depleted."


@dataclass(frozen=True)
class PortfolioState:
    stock: float
    bond: float
    cash: float
    spend: float   # constant real withdrawal target

    @property
    def total(self) -> float:
        return max(0.0, self.stock + self.bond + self.cash)


@dataclass(frozen=True)
class YearOutcome:
    next_state: PortfolioState
    withdrawal: float
    fees: float
    growth: float
    action: str
    friction: float = 0.0


def target_weights(strategy: str, custom_stock_allocation: float = 50) -> tuple[float, float]:
    """(stock, bond) weights; BUCKET has no bond sleeve and returns (0, 0)."""
    if strategy in STRATEGY_WEIGHTS:
        return STRATEGY_WEIGHTS[strategy]
    if strategy == "CUSTOM":
        stock = custom_stock_allocation / 100.0
        return stock, 1.0 - stock
    if strategy == "BUCKET":
        return 0.0, 0.0
    raise InvalidRequestError("strategy", f"unknown strategy {strategy!r}; expected one of {STRATEGIES}")


def initial_state(strategy: str, start_total: float, spend: float, weights: tuple[float, float]) -> PortfolioState:
    if strategy == "BUCKET":
        cash = min(start_total, CASH_BUFFER_YEARS * spend)
        return PortfolioState(stock=start_total - cash, bond=0.0, cash=cash, spend=spend)
    return PortfolioState(stock=start_total * weights[0], bond=start_total * weights[1], cash=0.0, spend=spend)


def display_allocation(strategy: str, start_total: float, spend: float, weights: tuple[float, float]) -> dict:
    """Starting weights shown next to the results."""
    if strategy == "BUCKET":
        if start_total > 0:
            cash = min(1.0, CASH_BUFFER_YEARS * spend / start_total)
        else:
            cash = 1.0 if spend > 0 else 0.0
        return {"stock": 1.0 - cash, "bond": 0.0, "cash": cash}
    return {"stock": weights[0], "bond": weights[1], "cash": 0.0}


def _depleted(state: PortfolioState, fees: float, growth: float, withdrawal: float = 0.0, friction: float = 0.0) -> YearOutcome:
    empty = PortfolioState(0.0, 0.0, 0.0, state.spend)
    return YearOutcome(empty, withdrawal, fees, growth, DEPLETED, friction)


def _bucket_year(stock, cash, stock_return, spend, withdrawal, friction_rate):
    """Refill-then-spend for the cash bucket. Returns (stock, cash, friction, action)."""
    buffer = CASH_BUFFER_YEARS * spend
    friction = 0.0
    refill = 0.0

    if stock_return > 0 and stock > 0 and cash < buffer:
        sold = min(buffer - cash, stock)
        stock -= sold
        refill = sold * (1 - friction_rate)
        friction += sold * friction_rate
        cash += refill

    forced = False
    if cash >= withdrawal:
        cash -= withdrawal
    else:
        shortfall = withdrawal - cash
        cash = 0.0
        gross = shortfall / (1 - friction_rate)
        sold = min(gross, stock)
        friction += sold * friction_rate
        stock = max(0.0, stock - gross)
        forced = True

    move = f"{stock_return:.1%}"
    if stock_return < 0:
        if forced:
            action = f"Market down {move}. Cash buffer empty, forced stock sale."
        else:
            action = f"Market down {move}. Spent from cash buffer."
    else:
        if refill > 0:
            action = f"Market up {move}. Refilled cash buffer by ${refill:,.0f}."
        else:
            action = f"Market up {move}. No refill needed."
        if forced:
            action += " Cash buffer empty, forced stock sale."
    return stock, cash, friction, action


def simulate_year(state: PortfolioState, returns: AnnualReturn, strategy: str,
                  weights: tuple[float, float], management_fee: float,
                  friction_rate: float = FRICTION_RATE) -> YearOutcome:
    """
    One year: grow each sleeve, charge the management fee on stock and bond
    (cash is fee-free), withdraw `spend` (capped by what is there) and apply the
    strategy. A pure function of its arguments, so replaying the same returns
    reproduces the same path.
    """
    gross_stock = state.stock * (1 + returns.stock)
    gross_bond = state.bond * (1 + returns.bond)
    gross_cash = state.cash * (1 + returns.cash)
    growth = (gross_stock - state.stock) + (gross_bond - state.bond) + (gross_cash - state.cash)

    fee_rate = management_fee / 100.0
    stock_fee = gross_stock * fee_rate
    bond_fee = gross_bond * fee_rate
    fees = stock_fee + bond_fee

    stock = gross_stock - stock_fee
    bond = gross_bond - bond_fee
    cash = gross_cash

    available = stock + bond + cash
    if available <= DEPLETION_THRESHOLD:
        return _depleted(state, fees, growth)
    withdrawal = min(state.spend, available)

    if strategy == "BUCKET":
        stock, cash, friction, action = _bucket_year(
            stock, cash, returns.stock, state.spend, withdrawal, friction_rate)
    else:
        total = available - withdrawal
        friction = total * friction_rate
        total -= friction
        if total <= DEPLETION_THRESHOLD:
            return _depleted(state, fees, growth, withdrawal, friction)
        stock = total * weights[0]
        bond = total * weights[1]
        cash = 0.0
        action = f"Rebalanced to {round(weights[0] * 100)}/{round(weights[1] * 100)}."

    next_state = PortfolioState(stock=max(0.0, stock), bond=max(0.0, bond), cash=max(0.0, cash), spend=state.spend)
    return YearOutcome(next_state, withdrawal, fees, growth, action, friction)
