"""JSON-ready views of engine results.

Formatting (locale, rounding for display) is left to the consumer; values
are emitted as plain floats.
"""

from __future__ import annotations

import dataclasses
import math
from datetime import date, datetime
from enum import Enum
from typing import Any

from argfolio.engine.drivers import DriversResult, NetIncome, ProjectedEarnings
from argfolio.engine.valuation import (
    Category,
    Item,
    Portfolio,
    Provider,
    TradeSide,
    item_net_realizable_value,
    provider_net_realizable_value,
)
from argfolio.portfolio.holdings import MoneyPair


def to_jsonable(obj: Any) -> Any:
    """Recursively convert dataclasses, enums, and dates to JSON types."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    return obj


def _pair(pair: MoneyPair | None) -> dict[str, float] | None:
    if pair is None:
        return None
    return {"ars": pair.ars, "usd": pair.usd}


def item_to_dict(item: Item, provider: Provider, vnr_side: TradeSide | None = None) -> dict[str, Any]:
    row = {
        "id": item.id,
        "asset_key": item.asset_key,
        "kind": item.kind.value,
        "symbol": item.symbol,
        "label": item.label,
        "native_currency": item.native_currency.value,
        "quantity": item.quantity,
        "value": _pair(item.value),
        "cost": _pair(item.cost),
        "pnl": _pair(item.pnl),
        "pnl_pct": item.pnl_pct,
        "fx": item.fx_label,
        "fx_rate": item.fx.rate if item.fx is not None else None,
        "fx_overridden": item.fx_overridden,
        "price": to_jsonable(item.price),
    }
    if item.fixed_term is not None:
        row["fixed_term"] = to_jsonable(item.fixed_term)
    if vnr_side is not None and item.is_priced:
        row["vnr"] = _pair(item_net_realizable_value(item, provider.commissions, vnr_side))
    return row


def provider_to_dict(provider: Provider, vnr_side: TradeSide | None = None) -> dict[str, Any]:
    row = {
        "id": provider.id,
        "name": provider.name,
        "totals": _pair(provider.totals),
        "pnl": _pair(provider.pnl),
        "fx": provider.fx_policy.label if provider.fx_policy is not None else None,
        "items": [item_to_dict(i, provider, vnr_side) for i in provider.items],
    }
    if provider.merged_from:
        row["merged_from"] = list(provider.merged_from)
    if vnr_side is not None:
        row["vnr"] = _pair(provider_net_realizable_value(provider, vnr_side))
    return row


def category_to_dict(category: Category, vnr_side: TradeSide | None = None) -> dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "fx_label": category.fx_label,
        "fx": category.fx_policy.label if category.fx_policy is not None else None,
        "totals": _pair(category.totals),
        "pnl": _pair(category.pnl),
        "providers": [provider_to_dict(p, vnr_side) for p in category.providers],
    }


def portfolio_to_dict(portfolio: Portfolio, vnr_side: TradeSide | None = None) -> dict[str, Any]:
    return {
        "as_of": portfolio.as_of.isoformat(),
        "kpis": to_jsonable(portfolio.kpis),
        "categories": [category_to_dict(c, vnr_side) for c in portfolio.categories],
        "issues": [i.to_dict() for i in portfolio.issues],
    }


def drivers_to_dict(result: DriversResult) -> dict[str, Any]:
    return to_jsonable(result)


def net_income_to_dict(income: NetIncome) -> dict[str, Any]:
    return to_jsonable(income)


def earnings_to_dict(earnings: ProjectedEarnings) -> dict[str, Any]:
    return to_jsonable(earnings)
