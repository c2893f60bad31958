# tests/services/analytics/test_fund.py
"""
Unit tests for fund performance calculations.

All tests use known values that can be verified by hand.

Test Coverage:
- calculate_tvpi / calculate_dpi / calculate_rvpi / calculate_moic: Multiples
- calculate_irr: Newton-Raphson solver and its guards
- build_fund_cash_flows: Investments -> dated cash flows
- FundPerformanceCalculator.calculate_all: Combined metrics
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.services.analytics import fund
from portfolio_engine.services.analytics.fund import (
    FundPerformanceCalculator,
    build_fund_cash_flows,
    calculate_dpi,
    calculate_irr,
    calculate_moic,
    calculate_rvpi,
    calculate_tvpi,
)
from portfolio_engine.services.analytics.types import (
    CashFlow,
    FundInvestmentRecord,
    Investment,
)

AS_OF = date(2024, 12, 31)


def _investment(invested: str, current: str, realized: str) -> Investment:
    return Investment(
        invested_amount=Decimal(invested),
        current_value=Decimal(current),
        realized_value=Decimal(realized),
    )


# =============================================================================
# MULTIPLE TESTS
# =============================================================================

class TestMultiples:
    """Tests for TVPI, DPI, RVPI and MOIC."""

    def test_fixture_portfolio(self, fund_records):
        """Invested 1000, current 900, realized 300."""
        investments = [record.to_investment() for record in fund_records]

        assert calculate_tvpi(investments) == Decimal("1.2")
        assert calculate_dpi(investments) == Decimal("0.3")
        assert calculate_rvpi(investments) == Decimal("0.9")
        assert calculate_moic(investments) == Decimal("1.2")

    def test_tvpi_is_dpi_plus_rvpi(self):
        investments = [_investment("300", "250", "125"), _investment("700", "0", "900")]

        tvpi = calculate_tvpi(investments)

        assert tvpi == calculate_dpi(investments) + calculate_rvpi(investments)

    def test_empty_portfolio(self):
        assert calculate_tvpi([]) is None
        assert calculate_dpi([]) is None
        assert calculate_rvpi([]) is None
        assert calculate_moic([]) is None

    def test_nothing_invested(self):
        """A zero denominator yields None rather than raising."""
        investments = [_investment("0", "100", "50")]

        assert calculate_tvpi(investments) is None
        assert calculate_dpi(investments) is None
        assert calculate_rvpi(investments) is None
        assert calculate_moic(investments) is None


# =============================================================================
# IRR TESTS
# =============================================================================

class TestCalculateIrr:
    """Tests for calculate_irr function."""

    def test_ten_percent_over_one_year(self):
        """
        -1000 then +1100 one calendar year later.

        365 days / 365.25 is slightly under one year, so the rate sits
        just above 10%.
        """
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2024, 1, 1), Decimal("1100")),
        ]

        irr = calculate_irr(cash_flows)

        assert irr is not None
        assert float(irr) == pytest.approx(0.10, abs=1e-4)
        assert irr.as_tuple().exponent == -8

    def test_input_order_does_not_matter(self):
        cash_flows = [
            CashFlow(date(2024, 1, 1), Decimal("1100")),
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
        ]

        assert float(calculate_irr(cash_flows)) == pytest.approx(0.10, abs=1e-3)

    def test_negative_return(self):
        """Ninety percent of the money back after a year is roughly -10%."""
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2024, 1, 1), Decimal("900")),
        ]

        assert float(calculate_irr(cash_flows)) == pytest.approx(-0.10, abs=1e-3)

    def test_step_below_minus_one_gives_up(self):
        """
        Half the money back: the first Newton step from 10% lands below
        -100%, where the discount base is undefined.
        """
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2024, 1, 1), Decimal("500")),
        ]

        assert calculate_irr(cash_flows) is None

    def test_fewer_than_two_flows(self):
        assert calculate_irr([]) is None
        assert calculate_irr([CashFlow(date(2023, 1, 1), Decimal("-1000"))]) is None

    def test_single_sign(self):
        """Without both an outflow and an inflow there is no rate to solve for."""
        outflows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2024, 1, 1), Decimal("-500")),
        ]
        inflows = [
            CashFlow(date(2023, 1, 1), Decimal("1000")),
            CashFlow(date(2024, 1, 1), Decimal("500")),
        ]

        assert calculate_irr(outflows) is None
        assert calculate_irr(inflows) is None

    def test_not_converged(self):
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2024, 1, 1), Decimal("1100")),
        ]

        assert calculate_irr(cash_flows, max_iterations=1) is None

    def test_flat_derivative_nudges_rate(self, monkeypatch):
        """A flat NPV' at the starting guess moves the rate up by 0.1 and carries on."""
        seen_rates = []
        npv_and_derivative = fund._npv_and_derivative

        def flat_at_start(flows, rate):
            seen_rates.append(rate)
            npv, derivative = npv_and_derivative(flows, rate)
            return (npv, 0.0) if len(seen_rates) == 1 else (npv, derivative)

        monkeypatch.setattr(fund, "_npv_and_derivative", flat_at_start)
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2024, 1, 1), Decimal("1100")),
        ]

        irr = calculate_irr(cash_flows)

        assert seen_rates[:2] == [pytest.approx(0.10), pytest.approx(0.20)]
        assert float(irr) == pytest.approx(0.10, abs=1e-4)

    def test_same_day_flows_never_leave_flat_region(self):
        """Every flow at t = 0 keeps NPV' at zero, so nudging runs out of iterations."""
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1000")),
            CashFlow(date(2023, 1, 1), Decimal("1100")),
        ]

        assert calculate_irr(cash_flows) is None

    def test_rate_above_ten_thousand_percent_rejected(self, caplog):
        """-1 then +1,000,000 a year later converges near 1e6, far past +10,000%."""
        caplog.set_level(logging.DEBUG, logger=fund.__name__)
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1")),
            CashFlow(date(2024, 1, 1), Decimal("1000000")),
        ]

        assert calculate_irr(cash_flows) is None
        assert "outside sane bounds" in caplog.text

    def test_rate_below_upper_bound_accepted(self):
        """-1 then +51 a year later is a rate of roughly 5,000%."""
        cash_flows = [
            CashFlow(date(2023, 1, 1), Decimal("-1")),
            CashFlow(date(2024, 1, 1), Decimal("51")),
        ]

        assert float(calculate_irr(cash_flows)) == pytest.approx(50.1, abs=0.5)

    def test_discount_factor_overflow_gives_up(self):
        """Decades between flows let the iterate blow (1 + r)^t past float range."""
        cash_flows = [
            CashFlow(date(2026, 7, 24), Decimal("1")),
            CashFlow(date(2029, 3, 9), Decimal("10000")),
            CashFlow(date(2001, 8, 15), Decimal("-1000")),
            CashFlow(date(2029, 5, 27), Decimal("-100000")),
            CashFlow(date(2038, 7, 5), Decimal("-10000")),
        ]

        assert calculate_irr(cash_flows) is None


# =============================================================================
# CASH FLOW TESTS
# =============================================================================

class TestBuildFundCashFlows:
    """Tests for build_fund_cash_flows function."""

    def test_fixture_flows(self, fund_records):
        cash_flows = build_fund_cash_flows(fund_records, AS_OF)

        assert cash_flows == [
            CashFlow(date(2022, 1, 1), Decimal("-600")),
            CashFlow(AS_OF, Decimal("300")),
            CashFlow(AS_OF, Decimal("500")),
            # Undated investment falls back to Jan 1 of the prior year
            CashFlow(date(2023, 1, 1), Decimal("-400")),
            CashFlow(AS_OF, Decimal("400")),
        ]

    def test_zero_amounts_skipped(self):
        record = FundInvestmentRecord(
            invested_amount=Decimal("0"),
            current_value=Decimal("0"),
            realized_value=Decimal("0"),
        )

        assert build_fund_cash_flows([record], AS_OF) == []


# =============================================================================
# CALCULATOR TESTS
# =============================================================================

class TestFundPerformanceCalculator:
    """Tests for FundPerformanceCalculator.calculate_all."""

    def test_calculate_all(self, fund_records):
        result = FundPerformanceCalculator.calculate_all(fund_records, AS_OF)

        assert result.tvpi == Decimal("1.2")
        assert result.dpi == Decimal("0.3")
        assert result.rvpi == Decimal("0.9")
        assert result.moic == Decimal("1.2")
        assert result.total_invested == Decimal("1000")
        assert result.total_current_value == Decimal("900")
        assert result.total_realized_value == Decimal("300")
        assert result.investment_count == 2
        # 1200 back on 1000 invested over two to three years
        assert result.irr is not None
        assert Decimal("0") < result.irr < Decimal("0.2")

    def test_empty(self):
        result = FundPerformanceCalculator.calculate_all([], AS_OF)

        assert result.tvpi is None
        assert result.irr is None
        assert result.total_invested == Decimal("0")
        assert result.investment_count == 0
