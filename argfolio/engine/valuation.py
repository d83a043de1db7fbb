"""Valuation aggregator: holdings -> items -> providers -> categories -> portfolio.

Each holding is valued in its native currency, converted to the counter
currency with the rate resolved for its (account, kind), and rolled up.
Totals at every level are recomputed from items, so
``portfolio.total == sum(category.total) == sum(provider.total) == sum(item.value)``
holds per currency. Merged provider views flatten their items and re-run the
same rollup.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Sequence

from argfolio.config.defaults import (
    ACCOUNT_MERGE,
    CATEGORY_FX_LABELS,
    CATEGORY_NAMES,
    CATEGORY_ORDER,
)
from argfolio.engine.fx import (
    FxMeta,
    FxPolicy,
    FxRates,
    OverrideStore,
    resolve_item_rate,
)
from argfolio.engine.issues import Issue, IssueCode
from argfolio.engine.yield_projection import (
    accrued_fixed_term_interest,
    fixed_term_days_remaining,
)
from argfolio.portfolio.holdings import (
    CASH_LIKE_KINDS,
    AccountType,
    AssetKind,
    Currency,
    FixedTermTerms,
    FundTerms,
    HoldingTerms,
    MoneyPair,
    PriceQuote,
    PriceStatus,
    RawHolding,
    YieldTerms,
    holding_asset_key,
    sum_pairs,
)

logger = logging.getLogger(__name__)

PNL_EPSILON = 1e-9


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------

class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class CommissionSettings:
    """Per-provider commissions. Percentages are in percent units (0.5 = 0.5%)."""

    buy_pct: float = 0.0
    sell_pct: float = 0.0
    fixed_ars: float = 0.0
    fixed_usd: float = 0.0

    def fixed_fee(self, currency: Currency, rate: float | None) -> float:
        """Fixed fee in ``currency``, converting the other side when a rate exists."""
        usable = rate is not None and math.isfinite(rate) and rate > 0
        if currency is Currency.USD:
            return self.fixed_usd + (self.fixed_ars / rate if usable else 0.0)
        return self.fixed_ars + (self.fixed_usd * rate if usable else 0.0)


NO_COMMISSIONS = CommissionSettings()


def net_realizable_value(
    value: float,
    commissions: CommissionSettings | None,
    side: TradeSide | str = TradeSide.SELL,
    fixed_fee: float = 0.0,
) -> float:
    """Commission-adjusted value.

    buy:  value - buy_pct% * value
    sell: value - sell_pct% * value - fixed_fee

    Floored at 0.
    """
    commissions = commissions or NO_COMMISSIONS
    if TradeSide(side) is TradeSide.BUY:
        net = value - commissions.buy_pct / 100 * value
    else:
        net = value - commissions.sell_pct / 100 * value - fixed_fee
    return max(0.0, net)


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FixedTermStatus:
    principal: float
    term_days: int
    contracted_interest: float
    accrued_interest: float
    days_elapsed: int
    days_remaining: int

    @property
    def is_matured(self) -> bool:
        return self.days_remaining == 0


@dataclass(frozen=True)
class Item:
    """A valued holding."""

    id: str
    account_id: str
    account_name: str
    kind: AssetKind
    symbol: str
    label: str
    category_id: str
    native_currency: Currency
    quantity: float
    value: MoneyPair
    price: PriceQuote
    asset_key: str
    cost: MoneyPair | None = None
    pnl: MoneyPair | None = None
    pnl_pct: float | None = None
    fx: FxMeta | None = None
    fx_overridden: bool = False
    terms: HoldingTerms | None = None
    fixed_term: FixedTermStatus | None = None

    @property
    def native_value(self) -> float:
        return self.value.get(self.native_currency)

    @property
    def is_priced(self) -> bool:
        return self.price.status is not PriceStatus.MISSING

    @property
    def fx_label(self) -> str:
        return self.fx.policy.label if self.fx is not None else "N/A"

    @property
    def yield_terms(self) -> YieldTerms | None:
        return self.terms if isinstance(self.terms, YieldTerms) else None


@dataclass(frozen=True)
class Provider:
    id: str
    name: str
    category_id: str
    items: tuple[Item, ...]
    totals: MoneyPair
    pnl: MoneyPair | None
    fx_policy: FxPolicy | None
    commissions: CommissionSettings = NO_COMMISSIONS
    merged_from: tuple[str, ...] = ()


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    fx_label: str
    providers: tuple[Provider, ...]
    totals: MoneyPair
    pnl: MoneyPair | None
    fx_policy: FxPolicy | None

    @property
    def items(self) -> list[Item]:
        return [item for provider in self.providers for item in provider.items]


@dataclass(frozen=True)
class PortfolioKPIs:
    total: MoneyPair
    pnl: MoneyPair | None
    usd_hard: float
    usd_equivalent: float
    ars_real: float
    pct_usd_hard: float
    pct_usd_equivalent: float
    pct_ars_real: float


@dataclass(frozen=True)
class Portfolio:
    as_of: datetime
    rates: FxRates
    categories: tuple[Category, ...]
    kpis: PortfolioKPIs
    issues: tuple[Issue, ...] = ()

    @property
    def total(self) -> MoneyPair:
        return self.kpis.total

    @property
    def items(self) -> list[Item]:
        return [item for category in self.categories for item in category.items]

    @property
    def providers(self) -> list[Provider]:
        return [provider for category in self.categories for provider in category.providers]

    def category(self, category_id: str) -> Category | None:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    @property
    def is_empty(self) -> bool:
        return not self.categories


# ---------------------------------------------------------------------------
# Category assignment
# ---------------------------------------------------------------------------

_KIND_CATEGORY = {
    AssetKind.CASH_ARS: "wallets",
    AssetKind.CASH_USD: "wallets",
    AssetKind.WALLET_YIELD: "wallets",
    AssetKind.PLAZO_FIJO: "plazos",
    AssetKind.CEDEAR: "cedears",
    AssetKind.CRYPTO: "crypto",
    AssetKind.STABLE: "crypto",
    AssetKind.FCI: "fci",
}


def category_for(holding: RawHolding) -> str:
    """Exchange cash sits with crypto and broker cash with cedears."""
    if holding.kind in (AssetKind.CASH_ARS, AssetKind.CASH_USD):
        if holding.account_type is AccountType.EXCHANGE:
            return "crypto"
        if holding.account_type is AccountType.BROKER:
            return "cedears"
    return _KIND_CATEGORY[holding.kind]


# ---------------------------------------------------------------------------
# Item valuation
# ---------------------------------------------------------------------------

def _price_native(holding: RawHolding, as_of: datetime) -> tuple[float, PriceQuote, FixedTermStatus | None]:
    """Native-currency value, effective quote, and fixed-term status."""
    kind = holding.kind

    if kind in CASH_LIKE_KINDS:
        amount = holding.balance if holding.balance is not None else holding.quantity
        return float(amount), PriceQuote(1.0, PriceStatus.OK, source="balance"), None

    if kind is AssetKind.PLAZO_FIJO:
        terms: FixedTermTerms = holding.terms  # type: ignore[assignment]
        today = as_of.date()
        accrued = accrued_fixed_term_interest(terms, today)
        status = FixedTermStatus(
            principal=terms.principal,
            term_days=terms.term_days,
            contracted_interest=terms.contracted_interest,
            accrued_interest=accrued,
            days_elapsed=min(max((today - terms.start_date).days, 0), terms.term_days),
            days_remaining=fixed_term_days_remaining(terms, today),
        )
        return terms.principal + accrued, PriceQuote(1.0, PriceStatus.OK, source="accrual"), status

    quote = holding.price
    if not quote.is_usable and isinstance(holding.terms, FundTerms):
        fund = holding.terms
        if fund.vcp is not None and math.isfinite(fund.vcp) and fund.vcp > 0:
            vcp_as_of = datetime.combine(fund.vcp_date, datetime.min.time()) if fund.vcp_date else None
            quote = PriceQuote(fund.vcp, PriceStatus.OK, source="vcp", as_of=vcp_as_of)
    if not quote.is_usable and kind is AssetKind.STABLE:
        quote = PriceQuote(1.0, PriceStatus.ESTIMATED, source="peg", as_of=quote.as_of)
    if not quote.is_usable:
        return 0.0, PriceQuote(None, PriceStatus.MISSING, quote.source, quote.as_of), None
    return holding.quantity * quote.price, quote, None


def _price_issue(item_key: str, holding: RawHolding, quote: PriceQuote) -> Issue | None:
    if quote.status is PriceStatus.MISSING:
        return Issue(
            IssueCode.PRICE_MISSING,
            f"No price available for {holding.symbol}",
            account_id=holding.account_id, kind=holding.kind.value, asset_key=item_key,
        )
    if quote.status is PriceStatus.STALE:
        return Issue(
            IssueCode.PRICE_STALE,
            f"Price for {holding.symbol} is stale (source: {quote.source or 'unknown'})",
            account_id=holding.account_id, kind=holding.kind.value, asset_key=item_key,
        )
    if quote.status is PriceStatus.ESTIMATED:
        return Issue(
            IssueCode.PRICE_ESTIMATED,
            f"Price for {holding.symbol} is estimated (source: {quote.source or 'unknown'})",
            account_id=holding.account_id, kind=holding.kind.value, asset_key=item_key,
        )
    return None


def value_holding(
    holding: RawHolding,
    rates: FxRates,
    as_of: datetime,
    overrides: OverrideStore | None = None,
    policy: Mapping[AssetKind, FxPolicy] | None = None,
) -> tuple[Item, list[Issue]]:
    """Value one holding in both currencies."""
    asset_key = holding_asset_key(holding)
    native_amount, quote, fixed_status = _price_native(holding, as_of)
    currency = holding.native_currency

    resolution = resolve_item_rate(rates, holding.account_id, holding.kind, overrides, policy)
    issues = [
        Issue(i.code, i.message, i.account_id, i.kind, asset_key) for i in resolution.issues
    ]
    price_issue = _price_issue(asset_key, holding, quote)
    if price_issue is not None:
        logger.debug("%s: %s", asset_key, price_issue.message)
        issues.append(price_issue)

    value = MoneyPair.from_native(native_amount, currency, resolution.rate)

    cost = holding.cost
    if cost is None and fixed_status is not None:
        cost = MoneyPair.from_native(fixed_status.principal, currency, resolution.rate)

    pnl = None
    pnl_pct = None
    if cost is not None and quote.status is not PriceStatus.MISSING:
        pnl = value - cost
        basis = cost.get(currency)
        if abs(basis) > PNL_EPSILON:
            pnl_pct = pnl.get(currency) / basis

    item = Item(
        id=holding.item_id or asset_key,
        account_id=holding.account_id,
        account_name=holding.account_name or holding.account_id,
        kind=holding.kind,
        symbol=holding.symbol,
        label=holding.label or holding.symbol,
        category_id=category_for(holding),
        native_currency=currency,
        quantity=holding.quantity,
        value=value,
        price=quote,
        asset_key=asset_key,
        cost=cost,
        pnl=pnl,
        pnl_pct=pnl_pct,
        fx=resolution.meta,
        fx_overridden=resolution.overridden,
        terms=holding.terms,
        fixed_term=fixed_status,
    )
    return item, issues


# ---------------------------------------------------------------------------
# Rollup
# ---------------------------------------------------------------------------

def _sum_pnl(items: Iterable[Item]) -> MoneyPair | None:
    pnls = [item.pnl for item in items if item.pnl is not None]
    return sum_pairs(pnls) if pnls else None


def _shared_policy(items: Sequence[Item]) -> FxPolicy | None:
    """The (family, side) every item shares, or None."""
    if not items or any(item.fx is None for item in items):
        return None
    policies = {item.fx.policy for item in items}  # type: ignore[union-attr]
    return policies.pop() if len(policies) == 1 else None


def build_provider(
    provider_id: str,
    name: str,
    category_id: str,
    items: Sequence[Item],
    commissions: CommissionSettings | None = None,
    merged_from: tuple[str, ...] = (),
) -> Provider:
    items = tuple(items)
    return Provider(
        id=provider_id,
        name=name,
        category_id=category_id,
        items=items,
        totals=sum_pairs(item.value for item in items),
        pnl=_sum_pnl(items),
        fx_policy=_shared_policy(items),
        commissions=commissions or NO_COMMISSIONS,
        merged_from=merged_from,
    )


def build_category(category_id: str, providers: Sequence[Provider]) -> Category:
    providers = tuple(providers)
    items = [item for provider in providers for item in provider.items]
    return Category(
        id=category_id,
        name=CATEGORY_NAMES.get(category_id, category_id),
        fx_label=CATEGORY_FX_LABELS.get(category_id, ""),
        providers=providers,
        totals=sum_pairs(provider.totals for provider in providers),
        pnl=_sum_pnl(items),
        fx_policy=_shared_policy(items),
    )


def merge_providers(
    providers: Sequence[Provider],
    *,
    merged_id: str | None = None,
    name: str | None = None,
) -> Provider:
    """Union the items of several providers and recompute totals from them.

    An item reachable through more than one provider is counted once.
    """
    if not providers:
        raise ValueError("merge_providers needs at least one provider")
    first = providers[0]
    seen: set[int] = set()
    items = []
    for provider in providers:
        for item in provider.items:
            if id(item) not in seen:
                seen.add(id(item))
                items.append(item)
    return build_provider(
        merged_id or first.id,
        name or first.name,
        first.category_id,
        items,
        commissions=first.commissions,
        merged_from=tuple(p.id for p in providers),
    )


def _base_account_id(provider_id: str, cash_suffix: str) -> str:
    if cash_suffix and provider_id.endswith(cash_suffix):
        return provider_id[: -len(cash_suffix)]
    return provider_id


def merged_provider_view(
    category: Category,
    *,
    cash_suffix: str = ACCOUNT_MERGE["cash_suffix"],
    cash_name_suffix: str = ACCOUNT_MERGE["cash_name_suffix"],
) -> Category:
    """Fold each ``<id><cash_suffix>`` cash sub-ledger into its ``<id>`` provider."""
    groups: OrderedDict[str, list[Provider]] = OrderedDict()
    for provider in category.providers:
        groups.setdefault(_base_account_id(provider.id, cash_suffix), []).append(provider)

    merged: list[Provider] = []
    for base_id, group in groups.items():
        if len(group) == 1:
            merged.append(group[0])
            continue
        holdings_side = next((p for p in group if p.id == base_id), group[0])
        name = holdings_side.name
        if cash_name_suffix and name.endswith(cash_name_suffix):
            name = name[: -len(cash_name_suffix)]
        ordered = [holdings_side] + [p for p in group if p is not holdings_side]
        merged.append(merge_providers(ordered, merged_id=base_id, name=name))
        logger.debug("Merged providers %s into %s", [p.id for p in group], base_id)

    return build_category(category.id, merged)


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------

def _clamp_pct(part: float, total: float) -> float:
    if total <= PNL_EPSILON:
        return 0.0
    return min(max(part / total * 100, 0.0), 100.0)


def compute_kpis(categories: Sequence[Category]) -> PortfolioKPIs:
    """Totals plus currency composition measured on USD values.

    usd_hard: USD-native holdings. usd_equivalent: equity proxies priced in
    ARS but tracking foreign assets. ars_real: everything else.
    """
    total = sum_pairs(category.totals for category in categories)
    items = [item for category in categories for item in category.items]

    hard = sum(item.value.usd for item in items if item.native_currency is Currency.USD)
    equivalent = sum(
        item.value.usd for item in items
        if item.kind is AssetKind.CEDEAR and item.native_currency is Currency.ARS
    )
    real = total.usd - hard - equivalent

    return PortfolioKPIs(
        total=total,
        pnl=_sum_pnl(items),
        usd_hard=hard,
        usd_equivalent=equivalent,
        ars_real=real,
        pct_usd_hard=_clamp_pct(hard, total.usd),
        pct_usd_equivalent=_clamp_pct(equivalent, total.usd),
        pct_ars_real=_clamp_pct(real, total.usd),
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _invalid_override_issues(
    holdings: Sequence[RawHolding], overrides: OverrideStore | None,
) -> list[Issue]:
    if overrides is None:
        return []
    targets = {(h.account_id, h.kind) for h in holdings}
    issues = []
    for override in overrides.all_overrides():
        if (override.account_id, override.kind) not in targets:
            issues.append(Issue(
                IssueCode.INVALID_OVERRIDE_TARGET,
                f"Override {override.key} matches no holding and is ignored",
                account_id=override.account_id,
                kind=override.kind.value,
            ))
    return issues


def aggregate(
    holdings: Sequence[RawHolding],
    overrides: OverrideStore | None = None,
    *,
    rates: FxRates,
    as_of: datetime,
    commissions: Mapping[str, CommissionSettings] | None = None,
    policy: Mapping[AssetKind, FxPolicy] | None = None,
    merge_cash_ledgers: bool = False,
    cash_suffix: str = ACCOUNT_MERGE["cash_suffix"],
    cash_name_suffix: str = ACCOUNT_MERGE["cash_name_suffix"],
) -> Portfolio:
    """Value every holding and roll the results up into a ``Portfolio``.

    Parameters
    ----------
    holdings : sequence of RawHolding
        Positions in display order; provider order follows first appearance.
    overrides : OverrideStore | None
        Per (account, kind) fx overrides.
    rates : FxRates
        Quotes for each family.
    as_of : datetime
        Valuation time; drives fixed-term accrual.
    commissions : mapping | None
        provider id -> CommissionSettings.
    merge_cash_ledgers : bool
        Present ``<id>`` and ``<id><cash_suffix>`` providers as one.

    Returns
    -------
    Portfolio
        Never raises on degraded data; see ``Portfolio.issues``.
    """
    commissions = commissions or {}
    issues: list[Issue] = []
    grouped: dict[str, OrderedDict[str, list[Item]]] = {}
    names: dict[str, str] = {}

    for holding in holdings:
        item, item_issues = value_holding(holding, rates, as_of, overrides, policy)
        issues.extend(item_issues)
        grouped.setdefault(item.category_id, OrderedDict()).setdefault(
            holding.account_id, []
        ).append(item)
        names.setdefault(holding.account_id, item.account_name)

    issues.extend(_invalid_override_issues(holdings, overrides))

    ordered_ids = [c for c in CATEGORY_ORDER if c in grouped]
    ordered_ids += [c for c in grouped if c not in ordered_ids]

    categories = []
    for category_id in ordered_ids:
        providers = [
            build_provider(
                account_id,
                names[account_id],
                category_id,
                items,
                commissions=commissions.get(account_id)
                or commissions.get(_base_account_id(account_id, cash_suffix)),
            )
            for account_id, items in grouped[category_id].items()
        ]
        category = build_category(category_id, providers)
        if merge_cash_ledgers:
            category = merged_provider_view(
                category, cash_suffix=cash_suffix, cash_name_suffix=cash_name_suffix,
            )
        categories.append(category)

    portfolio = Portfolio(
        as_of=as_of,
        rates=rates,
        categories=tuple(categories),
        kpis=compute_kpis(categories),
        issues=tuple(issues),
    )
    logger.debug(
        "Aggregated %d holdings into %d categories (total ARS %.2f, USD %.2f, %d issues)",
        len(holdings), len(categories), portfolio.total.ars, portfolio.total.usd, len(issues),
    )
    return portfolio


def item_net_realizable_value(
    item: Item,
    commissions: CommissionSettings | None,
    side: TradeSide | str = TradeSide.SELL,
) -> MoneyPair:
    """VNR for one item in both currencies, using the item's applied rate."""
    commissions = commissions or NO_COMMISSIONS
    rate = item.fx.rate if item.fx is not None else None
    fee = commissions.fixed_fee(item.native_currency, rate)
    native = net_realizable_value(item.native_value, commissions, side, fixed_fee=fee)
    return MoneyPair.from_native(native, item.native_currency, rate)


def provider_net_realizable_value(
    provider: Provider, side: TradeSide | str = TradeSide.SELL,
) -> MoneyPair:
    """Sum of item VNRs under the provider's commission settings."""
    return sum_pairs(
        item_net_realizable_value(item, provider.commissions, side)
        for item in provider.items
        if item.is_priced
    )
