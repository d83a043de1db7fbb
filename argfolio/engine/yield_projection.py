"""Yield projection for remunerated wallets and fixed-term deposits.

Rates are nominal annual rates (TNA) in percent with daily capitalization.

Two projection modes coexist on purpose:
  - linear (simple interest) for short previews, up to 90 days
  - compounded through the effective annual rate for the 1-year figure

``project(tna, p, 365)`` therefore differs between modes; both are kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from argfolio.config.defaults import YIELD_DEFAULTS
from argfolio.portfolio.holdings import FixedTermTerms

logger = logging.getLogger(__name__)

DAYS_PER_YEAR: int = YIELD_DEFAULTS["days_per_year"]
LINEAR_PREVIEW_MAX_DAYS: int = YIELD_DEFAULTS["linear_preview_max_days"]


def daily_rate(tna: float | None, days_per_year: int = DAYS_PER_YEAR) -> float:
    if tna is None or tna <= 0:
        return 0.0
    return tna / 100 / days_per_year


def effective_annual_rate(tna: float | None, days_per_year: int = DAYS_PER_YEAR) -> float:
    """TEA in percent: ``(1 + TNA/100/365)^365 - 1``. Zero for TNA <= 0."""
    r = daily_rate(tna, days_per_year)
    if r == 0.0:
        return 0.0
    return ((1 + r) ** days_per_year - 1) * 100


def daily_interest(principal: float, tna: float | None, days_per_year: int = DAYS_PER_YEAR) -> float:
    if principal <= 0:
        return 0.0
    return principal * daily_rate(tna, days_per_year)


def linear_interest(
    principal: float, tna: float | None, days: int, days_per_year: int = DAYS_PER_YEAR,
) -> float:
    if days <= 0:
        return 0.0
    return daily_interest(principal, tna, days_per_year) * days


def compounded_interest(
    principal: float, tna: float | None, days: int, days_per_year: int = DAYS_PER_YEAR,
) -> float:
    r = daily_rate(tna, days_per_year)
    if principal <= 0 or days <= 0 or r == 0.0:
        return 0.0
    return principal * ((1 + r) ** days - 1)


@dataclass(frozen=True)
class YieldProjection:
    effective_annual_rate_pct: float
    daily_interest: float
    interest: float
    total: float
    annual_interest: float
    horizon_days: int
    compounded: bool = False


def project(
    tna: float | None,
    principal: float,
    horizon_days: int,
    *,
    compounded: bool = False,
    days_per_year: int = DAYS_PER_YEAR,
) -> YieldProjection:
    """Project interest over ``horizon_days``.

    ``annual_interest`` is always ``principal * TEA / 100``. ``interest``
    follows the requested mode.
    """
    ear = effective_annual_rate(tna, days_per_year)
    if compounded:
        interest = compounded_interest(principal, tna, horizon_days, days_per_year)
    else:
        interest = linear_interest(principal, tna, horizon_days, days_per_year)
    annual = principal * ear / 100 if principal > 0 else 0.0
    return YieldProjection(
        effective_annual_rate_pct=ear,
        daily_interest=daily_interest(principal, tna, days_per_year),
        interest=interest,
        total=principal + interest,
        annual_interest=annual,
        horizon_days=max(int(horizon_days), 0),
        compounded=compounded,
    )


def projected_gain(
    principal: float,
    tna: float | None,
    horizon_days: int,
    *,
    linear_max_days: int = LINEAR_PREVIEW_MAX_DAYS,
    days_per_year: int = DAYS_PER_YEAR,
) -> float:
    """Preview gain: linear up to ``linear_max_days``, compounded beyond."""
    if horizon_days <= linear_max_days:
        return linear_interest(principal, tna, horizon_days, days_per_year)
    return compounded_interest(principal, tna, horizon_days, days_per_year)


# ---------------------------------------------------------------------------
# Fixed-term deposits
# ---------------------------------------------------------------------------

def _elapsed_days(terms: FixedTermTerms, as_of: date) -> int:
    elapsed = (as_of - terms.start_date).days
    return min(max(elapsed, 0), terms.term_days)


def accrued_fixed_term_interest(terms: FixedTermTerms, as_of: date) -> float:
    """Linear share of the contracted interest earned by ``as_of``."""
    if terms.term_days == 0:
        return terms.contracted_interest if as_of >= terms.maturity_date else 0.0
    return terms.contracted_interest * _elapsed_days(terms, as_of) / terms.term_days


def fixed_term_accrued_between(terms: FixedTermTerms, start: date, end: date) -> float:
    if end <= start:
        return 0.0
    return accrued_fixed_term_interest(terms, end) - accrued_fixed_term_interest(terms, start)


def fixed_term_days_remaining(terms: FixedTermTerms, as_of: date) -> int:
    return max((terms.maturity_date - as_of).days, 0)


def fixed_term_projected_gain(terms: FixedTermTerms, as_of: date, horizon_days: int) -> float:
    """Interest still to accrue within the horizon; zero once matured."""
    remaining = fixed_term_days_remaining(terms, as_of)
    if remaining == 0 or horizon_days <= 0 or terms.term_days == 0:
        return 0.0
    return terms.contracted_interest * min(horizon_days, remaining) / terms.term_days


# ---------------------------------------------------------------------------
# Wallet accrual catch-up
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccrualRow:
    day: date
    balance_before: float
    interest: float
    balance_after: float


def accrual_schedule(
    balance: float,
    tna: float | None,
    last_accrued: date,
    today: date,
    days_per_year: int = DAYS_PER_YEAR,
) -> list[AccrualRow]:
    """Daily compounded interest rows from ``last_accrued + 1`` to yesterday.

    Today's interest is not credited until the day closes.
    """
    rows: list[AccrualRow] = []
    r = daily_rate(tna, days_per_year)
    if r == 0.0 or balance <= 0:
        return rows

    day = last_accrued + timedelta(days=1)
    current = balance
    while day < today:
        interest = current * r
        rows.append(AccrualRow(day, current, interest, current + interest))
        current += interest
        day += timedelta(days=1)

    if rows:
        logger.debug("Accrual catch-up: %d day(s) from %s", len(rows), rows[0].day)
    return rows
