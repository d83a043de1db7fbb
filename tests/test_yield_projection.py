"""Tests for argfolio.engine.yield_projection."""

from __future__ import annotations

from datetime import date

import pytest

from argfolio.engine.yield_projection import (
    accrual_schedule,
    accrued_fixed_term_interest,
    compounded_interest,
    daily_interest,
    effective_annual_rate,
    fixed_term_accrued_between,
    fixed_term_days_remaining,
    fixed_term_projected_gain,
    linear_interest,
    project,
    projected_gain,
)
from argfolio.portfolio.holdings import FixedTermTerms


@pytest.fixture
def terms() -> FixedTermTerms:
    return FixedTermTerms(
        principal=100_000.0,
        tna=36.5,
        start_date=date(2026, 3, 1),
        maturity_date=date(2026, 3, 31),
    )


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

class TestRates:
    def test_daily_interest(self):
        """100k at 40% TNA earns ~109.59 per day."""
        assert daily_interest(100_000, 40) == pytest.approx(109.589, abs=1e-3)

    def test_effective_annual_rate(self):
        assert effective_annual_rate(40) == pytest.approx(49.15, abs=0.01)

    def test_zero_or_negative_tna(self):
        assert effective_annual_rate(0) == 0.0
        assert effective_annual_rate(-5) == 0.0
        assert daily_interest(100_000, -5) == 0.0
        assert effective_annual_rate(None) == 0.0

    def test_nonpositive_principal(self):
        assert daily_interest(0, 40) == 0.0
        assert compounded_interest(-10, 40, 30) == 0.0

    def test_linear_vs_compounded(self):
        linear = linear_interest(100_000, 40, 30)
        compounded = compounded_interest(100_000, 40, 30)
        assert linear == pytest.approx(100_000 * 0.40 / 365 * 30)
        assert compounded > linear


class TestProject:
    def test_linear_default(self):
        result = project(40, 100_000, 30)
        assert result.interest == pytest.approx(daily_interest(100_000, 40) * 30)
        assert result.total == pytest.approx(100_000 + result.interest)
        assert result.compounded is False

    def test_annual_interest_uses_ear(self):
        result = project(40, 100_000, 30)
        assert result.annual_interest == pytest.approx(100_000 * result.effective_annual_rate_pct / 100)

    def test_one_year_compounded_matches_ear(self):
        result = project(40, 100_000, 365, compounded=True)
        assert result.interest == pytest.approx(result.annual_interest)

    def test_one_year_modes_differ(self):
        """Linear and compounded one-year figures are both kept."""
        linear = project(40, 100_000, 365)
        compounded = project(40, 100_000, 365, compounded=True)
        assert linear.interest == pytest.approx(40_000)
        assert compounded.interest > linear.interest

    def test_zero_tna(self):
        result = project(0, 100_000, 30)
        assert result.interest == 0.0
        assert result.annual_interest == 0.0
        assert result.total == 100_000

    def test_negative_horizon(self):
        assert project(40, 100_000, -3).interest == 0.0

    def test_projected_gain_switches_at_90_days(self):
        assert projected_gain(100_000, 40, 90) == pytest.approx(linear_interest(100_000, 40, 90))
        assert projected_gain(100_000, 40, 91) == pytest.approx(compounded_interest(100_000, 40, 91))


# ---------------------------------------------------------------------------
# Fixed-term deposits
# ---------------------------------------------------------------------------

class TestFixedTerm:
    def test_contracted_interest(self, terms):
        assert terms.term_days == 30
        assert terms.contracted_interest == pytest.approx(3000.0)

    def test_expected_interest_wins(self):
        terms = FixedTermTerms(1000.0, 40.0, date(2026, 1, 1), date(2026, 1, 31), expected_interest=25.0)
        assert terms.contracted_interest == 25.0

    def test_accrual_is_linear(self, terms):
        assert accrued_fixed_term_interest(terms, date(2026, 3, 1)) == 0.0
        assert accrued_fixed_term_interest(terms, date(2026, 3, 16)) == pytest.approx(1500.0)
        assert accrued_fixed_term_interest(terms, date(2026, 3, 31)) == pytest.approx(3000.0)

    def test_accrual_clamped(self, terms):
        assert accrued_fixed_term_interest(terms, date(2026, 2, 1)) == 0.0
        assert accrued_fixed_term_interest(terms, date(2026, 6, 1)) == pytest.approx(3000.0)

    def test_accrued_between(self, terms):
        assert fixed_term_accrued_between(terms, date(2026, 3, 11), date(2026, 3, 21)) == pytest.approx(1000.0)
        assert fixed_term_accrued_between(terms, date(2026, 3, 21), date(2026, 3, 11)) == 0.0

    def test_days_remaining(self, terms):
        assert fixed_term_days_remaining(terms, date(2026, 3, 15)) == 16
        assert fixed_term_days_remaining(terms, date(2026, 4, 15)) == 0

    def test_projected_gain_capped_at_maturity(self, terms):
        assert fixed_term_projected_gain(terms, date(2026, 3, 21), 30) == pytest.approx(1000.0)
        assert fixed_term_projected_gain(terms, date(2026, 3, 21), 5) == pytest.approx(500.0)
        assert fixed_term_projected_gain(terms, date(2026, 4, 1), 30) == 0.0

    def test_zero_length_term(self):
        terms = FixedTermTerms(1000.0, 40.0, date(2026, 1, 1), date(2026, 1, 1), expected_interest=5.0)
        assert accrued_fixed_term_interest(terms, date(2025, 12, 31)) == 0.0
        assert accrued_fixed_term_interest(terms, date(2026, 1, 1)) == 5.0


# ---------------------------------------------------------------------------
# Accrual catch-up
# ---------------------------------------------------------------------------

class TestAccrualSchedule:
    def test_rows_until_yesterday(self):
        rows = accrual_schedule(100_000, 36.5, date(2026, 3, 10), date(2026, 3, 14))
        assert [r.day for r in rows] == [date(2026, 3, 11), date(2026, 3, 12), date(2026, 3, 13)]

    def test_compounds_daily(self):
        rows = accrual_schedule(100_000, 36.5, date(2026, 3, 10), date(2026, 3, 13))
        assert rows[0].interest == pytest.approx(100.0)
        assert rows[1].balance_before == pytest.approx(rows[0].balance_after)
        assert rows[1].interest == pytest.approx(100.1)

    def test_nothing_pending(self):
        assert accrual_schedule(100_000, 40, date(2026, 3, 14), date(2026, 3, 15)) == []

    def test_zero_rate(self):
        assert accrual_schedule(100_000, 0, date(2026, 3, 1), date(2026, 3, 15)) == []
