"""Tests for argfolio.output.serialize."""

from __future__ import annotations

import json
import math
from datetime import date

from argfolio.engine.drivers import compute_drivers, compute_projected_earnings
from argfolio.engine.valuation import CommissionSettings, TradeSide, aggregate
from argfolio.output.serialize import (
    drivers_to_dict,
    earnings_to_dict,
    portfolio_to_dict,
    to_jsonable,
)
from argfolio.portfolio.holdings import AssetKind, MoneyPair


class TestToJsonable:
    def test_dataclass_and_enum(self):
        assert to_jsonable(MoneyPair(1.0, 2.0)) == {"ars": 1.0, "usd": 2.0}
        assert to_jsonable(AssetKind.CEDEAR) == "cedear"

    def test_dates_and_nan(self):
        assert to_jsonable({"d": date(2026, 3, 1), "x": math.nan}) == {"d": "2026-03-01", "x": None}

    def test_tuples_become_lists(self):
        assert to_jsonable((1, (2, 3))) == [1, [2, 3]]


class TestPortfolioDict:
    def test_serializable(self, portfolio):
        data = portfolio_to_dict(portfolio)
        json.dumps(data)
        assert data["kpis"]["total"]["ars"] == portfolio.total.ars
        assert [c["id"] for c in data["categories"]] == [c.id for c in portfolio.categories]

    def test_issues_included(self, portfolio):
        codes = {i["code"] for i in portfolio_to_dict(portfolio)["issues"]}
        assert "price_estimated" in codes

    def test_fixed_term_status(self, portfolio):
        plazos = next(c for c in portfolio_to_dict(portfolio)["categories"] if c["id"] == "plazos")
        item = plazos["providers"][0]["items"][0]
        assert item["fixed_term"]["days_remaining"] == 16

    def test_vnr_only_when_requested(self, sample_holdings, rates, as_of):
        portfolio = aggregate(
            sample_holdings, rates=rates, as_of=as_of,
            commissions={"iol": CommissionSettings(sell_pct=1.0)},
        )
        plain = portfolio_to_dict(portfolio)
        assert "vnr" not in plain["categories"][0]["providers"][0]
        with_vnr = portfolio_to_dict(portfolio, TradeSide.SELL)
        cedears = next(c for c in with_vnr["categories"] if c["id"] == "cedears")
        iol = next(p for p in cedears["providers"] if p["id"] == "iol")
        assert iol["vnr"]["ars"] == 990.0


class TestAnalyticsDicts:
    def test_drivers(self, portfolio, today):
        data = drivers_to_dict(compute_drivers(portfolio, [], "ALL", today=today))
        json.dumps(data)
        assert data["period"] == "ALL"
        assert data["basis"] == "cost"

    def test_earnings(self, portfolio, today):
        data = earnings_to_dict(compute_projected_earnings(portfolio, "7D", today=today))
        json.dumps(data)
        assert data["horizon"] == "7D"
        assert data["horizon_days"] == 7
