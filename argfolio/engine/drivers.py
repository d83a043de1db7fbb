"""Drivers engine: what moved the portfolio over a period.

Per request the engine runs four steps:

  SELECT_BASELINE      most recent snapshot at or before the period start
  DIFF_PER_ASSET       current breakdown vs baseline breakdown, by asset key
  ROLL_UP_BY_CATEGORY  sum asset deltas per category, largest movers first
  DECOMPOSE_NET_INCOME net = interest + fees + variation (variation is the residual)

A period without a baseline is reported as ``missing_history`` with a hint
and no rows. The all-time period is the exception: without snapshots it
falls back to each holding's cost basis.

Also here: the 24h / MTD / YTD delta tiles and the forward-looking
projected-earnings table.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Sequence

from argfolio.config.defaults import (
    CATEGORY_NAMES,
    DRIVER_DEFAULTS,
    PROJECTION_HORIZONS,
    YIELD_DEFAULTS,
)
from argfolio.data.snapshot import BreakdownEntry, Snapshot, build_breakdown
from argfolio.engine.issues import Issue, IssueCode
from argfolio.engine.valuation import Item, Portfolio
from argfolio.engine.yield_projection import (
    compounded_interest,
    fixed_term_accrued_between,
    fixed_term_projected_gain,
    projected_gain,
)
from argfolio.portfolio.holdings import (
    MARKET_PRICED_KINDS,
    ZERO,
    AssetKind,
    Currency,
    FixedTermTerms,
    Movement,
    MovementType,
    MoneyPair,
    sum_pairs,
)

logger = logging.getLogger(__name__)

EPSILON: float = DRIVER_DEFAULTS["epsilon"]


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

class Period(str, Enum):
    H24 = "24H"
    D7 = "7D"
    D30 = "30D"
    D90 = "90D"
    Y1 = "1Y"
    MTD = "MTD"
    YTD = "YTD"
    ALL = "ALL"


_PERIOD_ALIASES = {"1D": Period.H24, "TOTAL": Period.ALL, "MAX": Period.ALL}

_PERIOD_DAYS = {
    Period.H24: 1,
    Period.D7: 7,
    Period.D30: 30,
    Period.D90: 90,
    Period.Y1: 365,
}


def parse_period(token: Period | str) -> Period:
    if isinstance(token, Period):
        return token
    normalized = str(token).strip().upper()
    if normalized in _PERIOD_ALIASES:
        return _PERIOD_ALIASES[normalized]
    try:
        return Period(normalized)
    except ValueError:
        valid = ", ".join(p.value for p in Period)
        raise ValueError(f"Unknown period '{token}', expected one of {valid}") from None


def period_start(period: Period | str, today: date) -> date | None:
    """Start boundary of ``period``; None for all-time."""
    period = parse_period(period)
    if period is Period.ALL:
        return None
    if period is Period.MTD:
        return today.replace(day=1)
    if period is Period.YTD:
        return date(today.year, 1, 1)
    return today - timedelta(days=_PERIOD_DAYS[period])


def select_baseline(
    snapshots: Sequence[Snapshot],
    period: Period | str,
    today: date,
    *,
    require_breakdown: bool = False,
) -> Snapshot | None:
    """Most recent snapshot at or before the period start (oldest for all-time)."""
    period = parse_period(period)
    candidates = sorted(
        (s for s in snapshots if s.has_breakdown or not require_breakdown),
        key=lambda s: s.date_key,
    )
    if not candidates:
        return None
    if period is Period.ALL:
        return candidates[0]

    boundary = period_start(period, today).isoformat()  # type: ignore[union-attr]
    baseline = None
    for snap in candidates:
        if snap.date_key <= boundary:
            baseline = snap
        else:
            break
    return baseline


class DriverStatus(str, Enum):
    OK = "ok"
    MISSING_HISTORY = "missing_history"


def _missing_hint(period: Period, today: date) -> str:
    if period is Period.ALL:
        return "No snapshots saved yet; showing gains against cost basis."
    start = period_start(period, today)
    return (
        f"No snapshot on or before {start.isoformat()} for {period.value}. "  # type: ignore[union-attr]
        "Save snapshots daily to build history."
    )


# ---------------------------------------------------------------------------
# Per-asset diff
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssetDelta:
    asset_key: str
    category_id: str
    current: MoneyPair
    baseline: MoneyPair | None
    delta: MoneyPair
    delta_pct: float | None
    label: str = ""

    @property
    def is_new(self) -> bool:
        return self.baseline is None

    @property
    def is_closed(self) -> bool:
        return self.baseline is not None and self.current == ZERO


def _pct(delta: float, base: float | None, epsilon: float) -> float | None:
    if base is None or abs(base) <= epsilon:
        return None
    return delta / base


def diff_breakdowns(
    current: dict[str, BreakdownEntry],
    baseline: dict[str, BreakdownEntry],
    *,
    labels: dict[str, str] | None = None,
    epsilon: float = EPSILON,
) -> list[AssetDelta]:
    """Per-asset deltas over the union of keys.

    Current-only assets carry their full value as delta with no percent;
    baseline-only assets carry the negated baseline.
    """
    labels = labels or {}
    deltas = []
    for key in list(current) + [k for k in baseline if k not in current]:
        now = current.get(key)
        past = baseline.get(key)
        now_value = now.value if now is not None else ZERO
        past_value = past.value if past is not None else None
        delta = now_value - (past_value or ZERO)
        category_id = now.category_id if now is not None else past.category_id  # type: ignore[union-attr]
        deltas.append(AssetDelta(
            asset_key=key,
            category_id=category_id,
            current=now_value,
            baseline=past_value,
            delta=delta,
            delta_pct=_pct(delta.ars, past_value.ars if past_value else None, epsilon),
            label=labels.get(key, key.rsplit(":", 1)[-1]),
        ))
    return deltas


# ---------------------------------------------------------------------------
# Category rollup
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DriverRow:
    category_id: str
    name: str
    current: MoneyPair
    baseline: MoneyPair
    delta: MoneyPair
    delta_pct: float | None
    assets: tuple[AssetDelta, ...]
    interest: MoneyPair = ZERO
    fees: MoneyPair = ZERO
    variation: MoneyPair = ZERO


def rollup_by_category(
    deltas: Iterable[AssetDelta],
    *,
    epsilon: float = EPSILON,
) -> list[DriverRow]:
    """Group asset deltas by category, largest absolute movers first."""
    grouped: OrderedDict[str, list[AssetDelta]] = OrderedDict()
    for d in deltas:
        grouped.setdefault(d.category_id, []).append(d)

    rows = []
    for category_id, assets in grouped.items():
        assets.sort(key=lambda d: abs(d.delta.ars), reverse=True)
        current = sum_pairs(d.current for d in assets)
        baseline = sum_pairs(d.baseline for d in assets if d.baseline is not None)
        delta = sum_pairs(d.delta for d in assets)
        rows.append(DriverRow(
            category_id=category_id,
            name=CATEGORY_NAMES.get(category_id, category_id),
            current=current,
            baseline=baseline,
            delta=delta,
            delta_pct=_pct(delta.ars, baseline.ars, epsilon),
            assets=tuple(assets),
        ))
    rows.sort(key=lambda r: abs(r.delta.ars), reverse=True)
    return rows


def _cost_basis_deltas(portfolio: Portfolio, epsilon: float) -> list[AssetDelta]:
    """All-time fallback: each item against its own cost basis.

    Items without a cost basis use their current value, so they contribute
    no gain rather than their whole balance.
    """
    deltas = []
    for item in portfolio.items:
        basis = item.cost if item.cost is not None else item.value
        delta = item.value - basis
        deltas.append(AssetDelta(
            asset_key=item.asset_key,
            category_id=item.category_id,
            current=item.value,
            baseline=basis,
            delta=delta,
            delta_pct=_pct(delta.ars, basis.ars, epsilon),
            label=item.label,
        ))
    return deltas


# ---------------------------------------------------------------------------
# Net income decomposition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CategoryIncome:
    category_id: str
    net: MoneyPair
    interest: MoneyPair
    fees: MoneyPair
    variation: MoneyPair


@dataclass(frozen=True)
class NetIncome:
    period: Period
    status: DriverStatus
    baseline_date: str | None
    net: MoneyPair = ZERO
    interest: MoneyPair = ZERO
    fees: MoneyPair = ZERO
    variation: MoneyPair = ZERO
    interest_estimated: bool = False
    categories: tuple[CategoryIncome, ...] = ()
    hint: str = ""

    def category(self, category_id: str) -> CategoryIncome | None:
        for row in self.categories:
            if row.category_id == category_id:
                return row
        return None


def _account_categories(portfolio: Portfolio) -> dict[str, str]:
    """account id -> category, preferring the yield-bearing category."""
    mapping: dict[str, str] = {}
    for item in portfolio.items:
        if item.kind in (AssetKind.WALLET_YIELD, AssetKind.PLAZO_FIJO):
            mapping[item.account_id] = item.category_id
        else:
            mapping.setdefault(item.account_id, item.category_id)
    return mapping


def _movement_pair(amount: float, currency: Currency, rate: float | None) -> MoneyPair:
    return MoneyPair.from_native(amount, currency, rate)


def _in_window(movement: Movement, start: date, end: date) -> bool:
    return start < movement.date <= end


def _estimated_item_interest(item: Item, start: date, end: date) -> float:
    """Native-currency interest an item should have earned in (start, end]."""
    days = (end - start).days
    if days <= 0:
        return 0.0
    if item.kind is AssetKind.WALLET_YIELD and item.yield_terms is not None:
        return compounded_interest(item.native_value, item.yield_terms.tna, days)
    if item.kind is AssetKind.PLAZO_FIJO and isinstance(item.terms, FixedTermTerms):
        return fixed_term_accrued_between(item.terms, start, end)
    return 0.0


def compute_net_income(
    portfolio: Portfolio,
    snapshots: Sequence[Snapshot],
    movements: Sequence[Movement],
    period: Period | str,
    *,
    today: date | None = None,
) -> NetIncome:
    """Split the period's value change into interest, fees, and variation.

    ``interest`` is realized interest movements in the window when any
    exist, otherwise an estimate from yield-bearing holdings
    (``interest_estimated`` is then True). ``fees`` is the negated sum of fee
    movements and fees embedded in trades. ``variation`` is the residual,
    so ``interest + fees + variation == net``.
    """
    period = parse_period(period)
    today = today or portfolio.as_of.date()
    baseline = select_baseline(snapshots, period, today)
    if baseline is None:
        logger.debug("Net income %s: no baseline", period.value)
        return NetIncome(
            period=period,
            status=DriverStatus.MISSING_HISTORY,
            baseline_date=None,
            hint=_missing_hint(period, today),
        )

    start = baseline.date
    ref_rate = portfolio.rates.reference_rate()
    account_category = _account_categories(portfolio)

    interest_by_cat: dict[str, MoneyPair] = {}
    fees_by_cat: dict[str, MoneyPair] = {}
    realized_interest = False

    for mv in movements:
        if not _in_window(mv, start, today):
            continue
        rate = mv.fx_rate if mv.fx_rate else ref_rate
        category_id = account_category.get(mv.account_id, "wallets")
        if mv.type is MovementType.INTEREST:
            realized_interest = True
            pair = _movement_pair(mv.amount, mv.currency, rate)
            interest_by_cat[category_id] = interest_by_cat.get(category_id, ZERO) + pair
        elif mv.type is MovementType.FEE:
            pair = _movement_pair(abs(mv.amount), mv.currency, rate)
            fees_by_cat[category_id] = fees_by_cat.get(category_id, ZERO) - pair
        if mv.fee_amount:
            pair = _movement_pair(abs(mv.fee_amount), mv.fee_currency or mv.currency, rate)
            fees_by_cat[category_id] = fees_by_cat.get(category_id, ZERO) - pair

    if not realized_interest:
        for item in portfolio.items:
            native = _estimated_item_interest(item, start, today)
            if native:
                rate = item.fx.rate if item.fx is not None else None
                pair = MoneyPair.from_native(native, item.native_currency, rate)
                interest_by_cat[item.category_id] = interest_by_cat.get(item.category_id, ZERO) + pair

    current_by_cat = {c.id: c.totals for c in portfolio.categories}
    past_by_cat = baseline.category_totals()
    category_ids = list(current_by_cat) + [
        c for c in list(past_by_cat) + list(interest_by_cat) + list(fees_by_cat)
        if c not in current_by_cat
    ]

    rows = []
    for category_id in dict.fromkeys(category_ids):
        net = current_by_cat.get(category_id, ZERO) - past_by_cat.get(category_id, ZERO)
        interest = interest_by_cat.get(category_id, ZERO)
        fees = fees_by_cat.get(category_id, ZERO)
        rows.append(CategoryIncome(category_id, net, interest, fees, net - interest - fees))

    net = portfolio.total - baseline.total
    interest = sum_pairs(interest_by_cat.values())
    fees = sum_pairs(fees_by_cat.values())
    return NetIncome(
        period=period,
        status=DriverStatus.OK,
        baseline_date=baseline.date_key,
        net=net,
        interest=interest,
        fees=fees,
        variation=net - interest - fees,
        interest_estimated=not realized_interest,
        categories=tuple(rows),
    )


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DriversResult:
    period: Period
    status: DriverStatus
    basis: str
    baseline_date: str | None
    rows: tuple[DriverRow, ...] = ()
    total_delta: MoneyPair = ZERO
    hint: str = ""
    issues: tuple[Issue, ...] = ()
    net_income: NetIncome | None = None


def compute_drivers(
    portfolio: Portfolio,
    snapshots: Sequence[Snapshot],
    period: Period | str,
    *,
    today: date | None = None,
    movements: Sequence[Movement] = (),
    epsilon: float = EPSILON,
) -> DriversResult:
    """Per-category drivers of value change over ``period``.

    Parameters
    ----------
    portfolio : Portfolio
        Current valuation.
    snapshots : sequence of Snapshot
        History, any order.
    period : Period | str
        24H, 7D, 30D, 90D, 1Y, MTD, YTD, or ALL.
    today : date | None
        Local calendar date; defaults to the portfolio's as-of date.
    movements : sequence of Movement
        Used to split each row into interest, fees, and variation.

    Returns
    -------
    DriversResult
        ``status`` is ``missing_history`` when no baseline exists; for ALL the
        rows then come from cost basis (``basis == "cost"``).
    """
    period = parse_period(period)
    today = today or portfolio.as_of.date()
    baseline = select_baseline(snapshots, period, today, require_breakdown=True)
    labels = {item.asset_key: item.label for item in portfolio.items}

    if baseline is None:
        issue = Issue(IssueCode.INSUFFICIENT_HISTORY, _missing_hint(period, today))
        if period is Period.ALL:
            rows = rollup_by_category(_cost_basis_deltas(portfolio, epsilon), epsilon=epsilon)
            logger.info("Drivers ALL: no snapshots, falling back to cost basis")
            return DriversResult(
                period=period,
                status=DriverStatus.MISSING_HISTORY,
                basis="cost",
                baseline_date=None,
                rows=tuple(rows),
                total_delta=sum_pairs(r.delta for r in rows),
                hint=issue.message,
                issues=(issue,),
            )
        logger.info("Drivers %s: no baseline snapshot", period.value)
        return DriversResult(
            period=period,
            status=DriverStatus.MISSING_HISTORY,
            basis="none",
            baseline_date=None,
            hint=issue.message,
            issues=(issue,),
        )

    deltas = diff_breakdowns(
        build_breakdown(portfolio), baseline.breakdown_items, labels=labels, epsilon=epsilon,
    )
    rows = rollup_by_category(deltas, epsilon=epsilon)

    income = compute_net_income(portfolio, [baseline], movements, period, today=today)
    split_rows = []
    for row in rows:
        split = income.category(row.category_id)
        interest = split.interest if split is not None else ZERO
        fees = split.fees if split is not None else ZERO
        split_rows.append(DriverRow(
            category_id=row.category_id,
            name=row.name,
            current=row.current,
            baseline=row.baseline,
            delta=row.delta,
            delta_pct=row.delta_pct,
            assets=row.assets,
            interest=interest,
            fees=fees,
            variation=row.delta - interest - fees,
        ))

    return DriversResult(
        period=period,
        status=DriverStatus.OK,
        basis="snapshot",
        baseline_date=baseline.date_key,
        rows=tuple(split_rows),
        total_delta=sum_pairs(r.delta for r in split_rows),
        net_income=income,
    )


# ---------------------------------------------------------------------------
# Delta tiles (24h / MTD / YTD)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeltaMetric:
    period: Period
    status: DriverStatus
    delta: MoneyPair | None = None
    delta_pct: float | None = None
    baseline_date: str | None = None
    hint: str = ""


def compute_delta(
    portfolio: Portfolio,
    snapshots: Sequence[Snapshot],
    period: Period | str,
    *,
    today: date | None = None,
    epsilon: float = EPSILON,
) -> DeltaMetric:
    period = parse_period(period)
    today = today or portfolio.as_of.date()
    baseline = select_baseline(snapshots, period, today)
    if baseline is None:
        return DeltaMetric(period, DriverStatus.MISSING_HISTORY, hint=_missing_hint(period, today))
    delta = portfolio.total - baseline.total
    return DeltaMetric(
        period=period,
        status=DriverStatus.OK,
        delta=delta,
        delta_pct=_pct(delta.ars, baseline.total.ars, epsilon),
        baseline_date=baseline.date_key,
    )


@dataclass(frozen=True)
class DashboardMetrics:
    day: DeltaMetric
    mtd: DeltaMetric
    ytd: DeltaMetric
    net_income: NetIncome
    drivers: DriversResult


def compute_dashboard_metrics(
    portfolio: Portfolio,
    snapshots: Sequence[Snapshot],
    movements: Sequence[Movement] = (),
    *,
    period: Period | str = DRIVER_DEFAULTS["default_period"],
    today: date | None = None,
) -> DashboardMetrics:
    """Everything the dashboard header and drivers table need in one call."""
    today = today or portfolio.as_of.date()
    return DashboardMetrics(
        day=compute_delta(portfolio, snapshots, Period.H24, today=today),
        mtd=compute_delta(portfolio, snapshots, Period.MTD, today=today),
        ytd=compute_delta(portfolio, snapshots, Period.YTD, today=today),
        net_income=compute_net_income(portfolio, snapshots, movements, period, today=today),
        drivers=compute_drivers(portfolio, snapshots, period, today=today, movements=movements),
    )


# ---------------------------------------------------------------------------
# Projected earnings
# ---------------------------------------------------------------------------

class EarningsStatus(str, Enum):
    OK = "ok"
    MISSING_DATA = "missing_data"


@dataclass(frozen=True)
class ProjectedEarningsRow:
    category_id: str
    name: str
    projected_gain: MoneyPair
    current_pnl: MoneyPair | None
    status: EarningsStatus = EarningsStatus.OK
    note: str = ""


@dataclass(frozen=True)
class ProjectedEarnings:
    horizon: str
    horizon_days: int
    rows: tuple[ProjectedEarningsRow, ...] = field(default_factory=tuple)
    total_projected: MoneyPair = ZERO
    total_pnl: MoneyPair | None = None


def horizon_days(horizon: str | int) -> int:
    if isinstance(horizon, int):
        return max(horizon, 0)
    token = horizon.strip().upper()
    if token in PROJECTION_HORIZONS:
        return PROJECTION_HORIZONS[token]
    if token.endswith("D") and token[:-1].isdigit():
        return int(token[:-1])
    valid = ", ".join(PROJECTION_HORIZONS)
    raise ValueError(f"Unknown horizon '{horizon}', expected one of {valid} or <N>D")


def _item_projection(
    item: Item, today: date, days: int, linear_max_days: int,
) -> tuple[float, EarningsStatus]:
    if item.kind is AssetKind.WALLET_YIELD:
        terms = item.yield_terms
        if terms is None or terms.tna is None:
            return 0.0, EarningsStatus.MISSING_DATA
        return projected_gain(item.native_value, terms.tna, days, linear_max_days=linear_max_days), EarningsStatus.OK
    if item.kind is AssetKind.PLAZO_FIJO and isinstance(item.terms, FixedTermTerms):
        return fixed_term_projected_gain(item.terms, today, days), EarningsStatus.OK
    return 0.0, EarningsStatus.OK


def compute_projected_earnings(
    portfolio: Portfolio,
    horizon: str | int = "30D",
    *,
    today: date | None = None,
    linear_max_days: int = YIELD_DEFAULTS["linear_preview_max_days"],
) -> ProjectedEarnings:
    """Expected gain per category over ``horizon`` with constant prices.

    Only yield accrual contributes; market-priced holdings add 0. Current
    unrealized P/L is reported alongside, never added to the projection.
    """
    days = horizon_days(horizon)
    today = today or portfolio.as_of.date()
    label = horizon if isinstance(horizon, str) else f"{horizon}D"

    rows = []
    for category in portfolio.categories:
        gain = ZERO
        status = EarningsStatus.OK
        for item in category.items:
            native, item_status = _item_projection(item, today, days, linear_max_days)
            if item_status is EarningsStatus.MISSING_DATA:
                status = EarningsStatus.MISSING_DATA
            if native:
                rate = item.fx.rate if item.fx is not None else None
                gain = gain + MoneyPair.from_native(native, item.native_currency, rate)
        market_only = all(item.kind in MARKET_PRICED_KINDS for item in category.items)
        rows.append(ProjectedEarningsRow(
            category_id=category.id,
            name=category.name,
            projected_gain=gain,
            current_pnl=category.pnl,
            status=status,
            note="constant price" if market_only else "",
        ))

    return ProjectedEarnings(
        horizon=label.upper(),
        horizon_days=days,
        rows=tuple(rows),
        total_projected=sum_pairs(r.projected_gain for r in rows),
        total_pnl=portfolio.kpis.pnl,
    )
