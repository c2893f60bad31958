# portfolio_engine/services/analytics/fund.py
"""
Fund performance functions for the Analytics Engine.

This module contains pure functions for fund-level performance multiples
and the money-weighted return:
- TVPI: Total Value to Paid-In
- DPI: Distributions to Paid-In
- RVPI: Residual Value to Paid-In
- MOIC: Multiple on Invested Capital
- IRR: Internal Rate of Return on dated cash flows (Newton-Raphson solver)

Formulas:
    TVPI = (Σ current_value + Σ realized_value) / Σ invested_amount
    DPI  = Σ realized_value / Σ invested_amount
    RVPI = Σ current_value / Σ invested_amount
    MOIC = Σ (current_value + realized_value) / Σ invested_amount

    IRR solves: Σ amount_i / (1 + r)^(t_i) = 0
        t_i = (date_i - first_date) / 365.25 days

TVPI and MOIC are numerically identical under this model; they are kept
as separate operations because their bases can diverge once "value" and
"multiple" are modelled differently.

Precision Note (Decimal vs Float):
    Ratios are computed in Decimal. The IRR solver iterates in float (it
    needs non-integer powers at every step) and the converged rate is
    converted back to Decimal with 8 decimal places.
"""

import logging
import math
from collections.abc import Sequence
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from portfolio_engine.services.analytics.types import (
    CashFlow,
    FundInvestmentRecord,
    FundPerformance,
    Investment,
)
from portfolio_engine.services.constants import (
    DAYS_PER_YEAR,
    IRR_DERIVATIVE_FLOOR,
    IRR_INITIAL_GUESS,
    IRR_MAX_ITERATIONS,
    IRR_MAX_RATE,
    IRR_MIN_RATE,
    IRR_PERTURBATION,
    IRR_QUANTUM,
    IRR_TOLERANCE,
    ZERO,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TOTALS
# =============================================================================

def _totals(investments: Sequence[Investment]) -> tuple[Decimal, Decimal, Decimal]:
    """Return (total invested, total current value, total realized value)."""
    total_invested = sum((inv.invested_amount for inv in investments), ZERO)
    total_current = sum((inv.current_value for inv in investments), ZERO)
    total_realized = sum((inv.realized_value for inv in investments), ZERO)
    return total_invested, total_current, total_realized


# =============================================================================
# MULTIPLES
# =============================================================================

def calculate_tvpi(investments: Sequence[Investment]) -> Decimal | None:
    """
    Calculate TVPI (Total Value to Paid-In).

    Args:
        investments: Fund investments

    Returns:
        TVPI as Decimal (1.5 = 1.5x), or None if empty or nothing invested
    """
    if not investments:
        return None

    total_invested, total_current, total_realized = _totals(investments)
    if total_invested == ZERO:
        return None

    return (total_current + total_realized) / total_invested


def calculate_dpi(investments: Sequence[Investment]) -> Decimal | None:
    """
    Calculate DPI (Distributions to Paid-In): realized cash back per unit invested.

    Returns:
        DPI as Decimal, or None if empty or nothing invested
    """
    if not investments:
        return None

    total_invested, _, total_realized = _totals(investments)
    if total_invested == ZERO:
        return None

    return total_realized / total_invested


def calculate_rvpi(investments: Sequence[Investment]) -> Decimal | None:
    """
    Calculate RVPI (Residual Value to Paid-In): unrealized value per unit invested.

    Returns:
        RVPI as Decimal, or None if empty or nothing invested
    """
    if not investments:
        return None

    total_invested, total_current, _ = _totals(investments)
    if total_invested == ZERO:
        return None

    return total_current / total_invested


def calculate_moic(investments: Sequence[Investment]) -> Decimal | None:
    """
    Calculate MOIC (Multiple on Invested Capital).

    Returns:
        MOIC as Decimal, or None if empty or nothing invested
    """
    if not investments:
        return None

    total_invested = sum((inv.invested_amount for inv in investments), ZERO)
    total_value = sum(
        (inv.current_value + inv.realized_value for inv in investments),
        ZERO,
    )
    if total_invested == ZERO:
        return None

    return total_value / total_invested


# =============================================================================
# INTERNAL RATE OF RETURN (IRR)
# =============================================================================

def _npv_and_derivative(
        flows: Sequence[tuple[float, float]],
        rate: float,
) -> tuple[float, float]:
    """
    NPV and dNPV/dr at `rate`.

    d/dr [CF / (1+r)^t] = -t × CF / (1+r)^(t+1)

    Returns (nan, nan) when 1 + rate <= 0, where the discount base is undefined,
    or when a discount factor overflows or underflows to zero.
    """
    base = 1 + rate
    if base <= 0:
        return math.nan, math.nan

    npv = 0.0
    derivative = 0.0
    try:
        for years, amount in flows:
            npv += amount / base ** years
            derivative -= years * amount / base ** (years + 1)
    except (OverflowError, ZeroDivisionError):
        return math.nan, math.nan

    return npv, derivative


def calculate_irr(
        cash_flows: Sequence[CashFlow],
        max_iterations: int = IRR_MAX_ITERATIONS,
        tolerance: float = IRR_TOLERANCE,
) -> Decimal | None:
    """
    Calculate the Internal Rate of Return of dated cash flows.

    Newton-Raphson iteration starting at 10%:
        r_new = r - NPV(r) / NPV'(r)
    converging when |r_new - r| < tolerance.

    Guards:
        - Fewer than 2 flows, or flows of only one sign: None, no iteration
        - |NPV'(r)| < 1e-14: r is nudged by +0.1 and iteration continues.
          This is a pragmatic escape from flat regions, not a method with a
          convergence guarantee.
        - r becomes non-finite, 1 + r <= 0, or a discount factor overflows: None
        - Converged r outside [-1, 100] (-100% .. +10,000%): None
        - No convergence within max_iterations: None

    Args:
        cash_flows: Negative = investment (outflow), positive = distribution
                    or residual value (inflow)
        max_iterations: Maximum solver iterations
        tolerance: Convergence tolerance on the rate step

    Returns:
        Annual IRR as Decimal (0.10 = 10%) with 8 decimal places, or None

    Example:
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2024, 1, 1), Decimal("1100")),
        ]
        calculate_irr(cash_flows)  # ~0.1000
    """
    if len(cash_flows) < 2:
        return None

    has_negative = any(cf.amount < 0 for cf in cash_flows)
    has_positive = any(cf.amount > 0 for cf in cash_flows)
    if not (has_negative and has_positive):
        logger.debug("IRR requires both negative and positive cash flows")
        return None

    sorted_flows = sorted(cash_flows, key=lambda cf: cf.date)
    first_date = sorted_flows[0].date

    # (year fraction, amount) pairs; the solver operates in float
    flows = [
        ((cf.date - first_date).days / DAYS_PER_YEAR, float(cf.amount))
        for cf in sorted_flows
    ]

    rate = IRR_INITIAL_GUESS

    for _ in range(max_iterations):
        npv, derivative = _npv_and_derivative(flows, rate)

        if math.isnan(derivative):
            logger.debug(f"IRR diverged: NPV undefined at rate {rate}")
            return None

        if abs(derivative) < IRR_DERIVATIVE_FLOOR:
            rate += IRR_PERTURBATION
            continue

        new_rate = rate - npv / derivative

        if not math.isfinite(new_rate):
            logger.debug("IRR diverged: rate became non-finite")
            return None

        if abs(new_rate - rate) < tolerance:
            if new_rate < IRR_MIN_RATE or new_rate > IRR_MAX_RATE:
                logger.debug(f"IRR {new_rate} outside sane bounds, rejected")
                return None
            return Decimal(str(new_rate)).quantize(IRR_QUANTUM, rounding=ROUND_HALF_UP)

        rate = new_rate

    logger.debug(f"IRR did not converge after {max_iterations} iterations")
    return None


# =============================================================================
# CASH FLOW CONSTRUCTION
# =============================================================================

def build_fund_cash_flows(
        records: Sequence[FundInvestmentRecord],
        as_of: date,
) -> list[CashFlow]:
    """
    Build IRR cash flows from stored fund investments.

    For each investment:
        - outflow of invested_amount at its investment date
          (Jan 1 of the year before `as_of` when the date is unknown)
        - inflow of realized_value at `as_of`
        - inflow of current_value at `as_of` (residual value treated as
          a terminal distribution)
    Zero amounts are skipped.

    Args:
        records: Fund investment rows
        as_of: Valuation date of the terminal flows

    Returns:
        Cash flows in record order
    """
    fallback_date = date(as_of.year - 1, 1, 1)
    cash_flows: list[CashFlow] = []

    for record in records:
        investment_date = record.investment_date or fallback_date

        if record.invested_amount > 0:
            cash_flows.append(CashFlow(date=investment_date, amount=-record.invested_amount))

        if record.realized_value > 0:
            cash_flows.append(CashFlow(date=as_of, amount=record.realized_value))

        if record.current_value > 0:
            cash_flows.append(CashFlow(date=as_of, amount=record.current_value))

    return cash_flows


# =============================================================================
# COMBINED FUND CALCULATOR
# =============================================================================

class FundPerformanceCalculator:
    """
    Calculator for all fund performance metrics.

    This class provides a convenient interface to calculate all
    multiples and the IRR at once.
    """

    @staticmethod
    def calculate_all(
            records: Sequence[FundInvestmentRecord],
            as_of: date,
    ) -> FundPerformance:
        """
        Calculate all fund performance metrics.

        Args:
            records: Fund investment rows
            as_of: Valuation date used for terminal IRR cash flows

        Returns:
            FundPerformance with every available metric
        """
        investments = [record.to_investment() for record in records]
        total_invested, total_current, total_realized = _totals(investments)

        return FundPerformance(
            tvpi=calculate_tvpi(investments),
            dpi=calculate_dpi(investments),
            rvpi=calculate_rvpi(investments),
            moic=calculate_moic(investments),
            irr=calculate_irr(build_fund_cash_flows(records, as_of)),
            total_invested=total_invested,
            total_current_value=total_current,
            total_realized_value=total_realized,
            investment_count=len(investments),
        )
