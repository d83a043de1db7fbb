"""Tests for argfolio.engine.fx -- rate resolution and overrides."""

from __future__ import annotations

import math

import pytest

from argfolio.engine.fx import (
    DEFAULT_FX_POLICY,
    FxFamily,
    FxMeta,
    FxOverride,
    FxPolicy,
    FxQuote,
    FxRates,
    FxSide,
    InMemoryOverrideStore,
    policy_from_mapping,
    resolve_item_rate,
    resolve_rate,
)
from argfolio.engine.issues import IssueCode
from argfolio.portfolio.holdings import AssetKind

# ---------------------------------------------------------------------------
# resolve_rate
# ---------------------------------------------------------------------------

class TestResolveRate:
    def test_side_c_uses_sell_quote(self, rates):
        """Buying USD pays the counterpart's ask."""
        assert resolve_rate(rates, FxFamily.MEP, FxSide.BUY) == 1220.0

    def test_side_v_uses_buy_quote(self, rates):
        assert resolve_rate(rates, FxFamily.MEP, FxSide.SELL) == 1200.0

    def test_string_tokens(self, rates):
        assert resolve_rate(rates, "official", "V") == 1000.0
        assert resolve_rate(rates, "crypto", "C") == 1250.0

    def test_missing_quote_is_nan(self):
        rates = FxRates(official=FxQuote(buy=1000.0))
        assert math.isnan(resolve_rate(rates, "official", "C"))
        assert math.isnan(resolve_rate(rates, "mep", "V"))

    def test_unknown_family_raises(self, rates):
        with pytest.raises(ValueError):
            resolve_rate(rates, "blue", "V")

    def test_reference_rate_prefers_mep_sell(self, rates):
        assert rates.reference_rate() == 1220.0

    def test_reference_rate_falls_back_to_official(self):
        rates = FxRates(official=FxQuote(1000.0, 1050.0))
        assert rates.reference_rate() == 1050.0

    def test_reference_rate_none_without_quotes(self):
        assert FxRates().reference_rate() is None

    def test_has_any_rate(self, rates):
        assert rates.has_any_rate()
        assert not FxRates().has_any_rate()
        assert not FxRates(mep=FxQuote(0.0, -1.0)).has_any_rate()


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

class TestPolicy:
    def test_default_families(self):
        assert DEFAULT_FX_POLICY[AssetKind.CEDEAR].family is FxFamily.MEP
        assert DEFAULT_FX_POLICY[AssetKind.STABLE].family is FxFamily.CRYPTO
        assert DEFAULT_FX_POLICY[AssetKind.PLAZO_FIJO].family is FxFamily.OFFICIAL
        assert all(p.side is FxSide.SELL for p in DEFAULT_FX_POLICY.values())

    def test_label(self):
        assert FxPolicy("mep", "V").label == "MEP V"
        assert FxPolicy(FxFamily.OFFICIAL, FxSide.BUY).label == "OFFICIAL C"

    def test_invalid_policy_raises(self):
        with pytest.raises(ValueError):
            FxPolicy("official", "Z")

    def test_policy_from_mapping_overlays_defaults(self):
        policy = policy_from_mapping({"cedear": {"family": "official", "side": "C"}})
        assert policy[AssetKind.CEDEAR] == FxPolicy("official", "C")
        assert policy[AssetKind.CRYPTO] == DEFAULT_FX_POLICY[AssetKind.CRYPTO]

    def test_meta_policy(self):
        meta = FxMeta(FxFamily.MEP, FxSide.SELL, 1200.0)
        assert meta.policy == FxPolicy("mep", "V")


# ---------------------------------------------------------------------------
# Override store
# ---------------------------------------------------------------------------

class TestOverrideStore:
    def test_set_get_clear(self):
        store = InMemoryOverrideStore()
        store.set_override("iol", AssetKind.CEDEAR, FxPolicy("official", "V"))
        assert store.get_override("iol", "cedear") == FxPolicy("official", "V")
        assert len(store) == 1
        assert store.clear_override("iol", AssetKind.CEDEAR) is True
        assert store.clear_override("iol", AssetKind.CEDEAR) is False
        assert store.get_override("iol", AssetKind.CEDEAR) is None

    def test_construct_from_overrides(self):
        override = FxOverride("binance", AssetKind.CRYPTO, FxPolicy("mep", "C"))
        store = InMemoryOverrideStore([override])
        assert store.all_overrides() == [override]
        assert override.key == "binance:crypto"


# ---------------------------------------------------------------------------
# resolve_item_rate
# ---------------------------------------------------------------------------

class TestResolveItemRate:
    def test_automatic_policy(self, rates):
        resolution = resolve_item_rate(rates, "iol", AssetKind.CEDEAR)
        assert resolution.rate == 1200.0
        assert resolution.overridden is False
        assert resolution.issues == ()

    def test_override_applies(self, rates):
        store = InMemoryOverrideStore()
        store.set_override("iol", AssetKind.CEDEAR, FxPolicy("official", "V"))
        resolution = resolve_item_rate(rates, "iol", AssetKind.CEDEAR, store)
        assert resolution.rate == 1000.0
        assert resolution.overridden is True
        assert resolution.meta.family is FxFamily.OFFICIAL

    def test_override_scoped_to_account(self, rates):
        store = InMemoryOverrideStore()
        store.set_override("iol", AssetKind.CEDEAR, FxPolicy("official", "V"))
        assert resolve_item_rate(rates, "balanz", AssetKind.CEDEAR, store).rate == 1200.0

    def test_unusable_override_falls_back(self):
        rates = FxRates(mep=FxQuote(1200.0, 1220.0))
        store = InMemoryOverrideStore()
        store.set_override("iol", AssetKind.CEDEAR, FxPolicy("official", "V"))
        resolution = resolve_item_rate(rates, "iol", AssetKind.CEDEAR, store)
        assert resolution.rate == 1200.0
        assert resolution.overridden is False
        assert [i.code for i in resolution.issues] == [IssueCode.RATE_UNAVAILABLE]

    def test_no_rate_at_all(self):
        resolution = resolve_item_rate(FxRates(), "iol", AssetKind.CEDEAR)
        assert resolution.meta is None
        assert resolution.rate is None
        assert resolution.issues[0].code is IssueCode.RATE_UNAVAILABLE
        assert resolution.issues[0].account_id == "iol"

    def test_custom_policy(self, rates):
        policy = policy_from_mapping({"cedear": {"family": "crypto", "side": "C"}})
        resolution = resolve_item_rate(rates, "iol", AssetKind.CEDEAR, policy=policy)
        assert resolution.rate == 1250.0
