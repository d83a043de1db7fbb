"""Exchange rate resolution.

Three rate families (official, MEP, crypto) each publish a buy and a sell
quote in ARS per USD. A side ``C`` (purchase of foreign currency) pays the
counterpart's sell quote; a side ``V`` (sale of foreign currency) receives
its buy quote.

Each asset kind has a default (family, side) policy. A per (account, kind)
override replaces it, unless the override resolves to an unusable rate, in
which case the automatic policy is used and a ``rate_unavailable`` issue is
recorded.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Protocol

from argfolio.config.defaults import FX_POLICY
from argfolio.engine.issues import Issue, IssueCode
from argfolio.portfolio.holdings import AssetKind

logger = logging.getLogger(__name__)


class FxFamily(str, Enum):
    OFFICIAL = "official"
    MEP = "mep"
    CRYPTO = "crypto"


class FxSide(str, Enum):
    BUY = "C"
    SELL = "V"


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FxQuote:
    buy: float | None = None
    sell: float | None = None


@dataclass(frozen=True)
class FxRates:
    """Quotes for every family at one point in time."""

    official: FxQuote = field(default_factory=FxQuote)
    mep: FxQuote = field(default_factory=FxQuote)
    crypto: FxQuote = field(default_factory=FxQuote)
    updated_at: datetime | None = None

    def quote(self, family: FxFamily | str) -> FxQuote:
        return getattr(self, FxFamily(family).value)

    def reference_rate(self) -> float | None:
        """Rate used for movement conversion: MEP sell, then official sell."""
        for family in (FxFamily.MEP, FxFamily.OFFICIAL):
            rate = resolve_rate(self, family, FxSide.BUY)
            if is_valid_rate(rate):
                return rate
        return None

    def has_any_rate(self) -> bool:
        return any(
            is_valid_rate(resolve_rate(self, family, side))
            for family in FxFamily
            for side in FxSide
        )


def is_valid_rate(rate: float | None) -> bool:
    return rate is not None and math.isfinite(rate) and rate > 0


def resolve_rate(rates: FxRates, family: FxFamily | str, side: FxSide | str) -> float:
    """Return the quote to apply for ``(family, side)``, or NaN if unquoted."""
    quote = rates.quote(family)
    raw = quote.sell if FxSide(side) is FxSide.BUY else quote.buy
    if raw is None:
        return math.nan
    return float(raw)


# ---------------------------------------------------------------------------
# Policy & overrides
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FxPolicy:
    family: FxFamily
    side: FxSide

    def __post_init__(self) -> None:
        object.__setattr__(self, "family", FxFamily(self.family))
        object.__setattr__(self, "side", FxSide(self.side))

    @property
    def label(self) -> str:
        return f"{self.family.value.upper()} {self.side.value}"


@dataclass(frozen=True)
class FxMeta:
    """The policy actually applied to an item and the rate it resolved to."""

    family: FxFamily
    side: FxSide
    rate: float

    @property
    def policy(self) -> FxPolicy:
        return FxPolicy(self.family, self.side)


@dataclass(frozen=True)
class FxOverride:
    account_id: str
    kind: AssetKind
    policy: FxPolicy

    @property
    def key(self) -> str:
        return f"{self.account_id}:{self.kind.value}"


class OverrideStore(Protocol):
    """Read side of the per (account, kind) override preferences."""

    def get_override(self, account_id: str, kind: AssetKind) -> FxPolicy | None: ...

    def all_overrides(self) -> list[FxOverride]: ...


class InMemoryOverrideStore:
    """Dict-backed override store."""

    def __init__(self, overrides: list[FxOverride] | None = None) -> None:
        self._overrides: dict[tuple[str, AssetKind], FxPolicy] = {}
        for override in overrides or []:
            self._overrides[(override.account_id, override.kind)] = override.policy

    def get_override(self, account_id: str, kind: AssetKind) -> FxPolicy | None:
        return self._overrides.get((account_id, AssetKind(kind)))

    def all_overrides(self) -> list[FxOverride]:
        return [
            FxOverride(account_id, kind, policy)
            for (account_id, kind), policy in self._overrides.items()
        ]

    def set_override(self, account_id: str, kind: AssetKind, policy: FxPolicy) -> None:
        self._overrides[(account_id, AssetKind(kind))] = policy

    def clear_override(self, account_id: str, kind: AssetKind) -> bool:
        return self._overrides.pop((account_id, AssetKind(kind)), None) is not None

    def __len__(self) -> int:
        return len(self._overrides)


def policy_from_mapping(mapping: Mapping[str, Mapping[str, str]]) -> dict[AssetKind, FxPolicy]:
    """Build a kind -> policy table from ``{kind: {family, side}}`` dicts."""
    policy = {
        AssetKind(kind): FxPolicy(entry["family"], entry["side"])
        for kind, entry in FX_POLICY.items()
    }
    for kind, entry in mapping.items():
        policy[AssetKind(kind)] = FxPolicy(entry["family"], entry["side"])
    return policy


DEFAULT_FX_POLICY: dict[AssetKind, FxPolicy] = policy_from_mapping({})


# ---------------------------------------------------------------------------
# Per-item resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RateResolution:
    meta: FxMeta | None
    overridden: bool = False
    issues: tuple[Issue, ...] = ()

    @property
    def rate(self) -> float | None:
        return self.meta.rate if self.meta is not None else None


def resolve_item_rate(
    rates: FxRates,
    account_id: str,
    kind: AssetKind,
    overrides: OverrideStore | None = None,
    policy: Mapping[AssetKind, FxPolicy] | None = None,
) -> RateResolution:
    """Resolve the rate for one (account, kind), honouring overrides."""
    kind = AssetKind(kind)
    policy = policy or DEFAULT_FX_POLICY
    issues: list[Issue] = []

    override = overrides.get_override(account_id, kind) if overrides is not None else None
    if override is not None:
        rate = resolve_rate(rates, override.family, override.side)
        if is_valid_rate(rate):
            return RateResolution(FxMeta(override.family, override.side, rate), overridden=True)
        logger.warning(
            "Override %s for %s:%s has no usable rate, using automatic policy",
            override.label, account_id, kind.value,
        )
        issues.append(Issue(
            IssueCode.RATE_UNAVAILABLE,
            f"Override {override.label} has no usable rate; automatic policy applied",
            account_id=account_id,
            kind=kind.value,
        ))

    auto = policy.get(kind, DEFAULT_FX_POLICY[kind])
    rate = resolve_rate(rates, auto.family, auto.side)
    if is_valid_rate(rate):
        return RateResolution(FxMeta(auto.family, auto.side, rate), issues=tuple(issues))

    logger.warning("No usable %s rate for %s:%s", auto.label, account_id, kind.value)
    issues.append(Issue(
        IssueCode.RATE_UNAVAILABLE,
        f"No usable {auto.label} rate; counter-currency value unavailable",
        account_id=account_id,
        kind=kind.value,
    ))
    return RateResolution(None, issues=tuple(issues))
