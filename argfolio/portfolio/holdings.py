"""Holding and movement records fed into the valuation engine.

A ``RawHolding`` is one upstream position before valuation. Its shape is a
tagged union over ``AssetKind``: the kind decides the native currency and
which kind-specific payload (yield terms, fixed-term terms, fund terms) the
holding may carry. Mismatched payloads are rejected at construction.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class AssetKind(str, Enum):
    CASH_ARS = "cash_ars"
    CASH_USD = "cash_usd"
    WALLET_YIELD = "wallet_yield"
    PLAZO_FIJO = "plazo_fijo"
    CEDEAR = "cedear"
    CRYPTO = "crypto"
    STABLE = "stable"
    FCI = "fci"


class Currency(str, Enum):
    ARS = "ARS"
    USD = "USD"


class AccountType(str, Enum):
    BANK = "bank"
    WALLET = "wallet"
    BROKER = "broker"
    EXCHANGE = "exchange"
    OTHER = "other"


class PriceStatus(str, Enum):
    OK = "ok"
    STALE = "stale"
    ESTIMATED = "estimated"
    MISSING = "missing"


class MovementType(str, Enum):
    INTEREST = "interest"
    FEE = "fee"
    BUY = "buy"
    SELL = "sell"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


CASH_LIKE_KINDS = frozenset({AssetKind.CASH_ARS, AssetKind.CASH_USD, AssetKind.WALLET_YIELD})
MARKET_PRICED_KINDS = frozenset({
    AssetKind.CEDEAR, AssetKind.CRYPTO, AssetKind.STABLE, AssetKind.FCI,
})

_FIXED_NATIVE = {
    AssetKind.CASH_ARS: Currency.ARS,
    AssetKind.CASH_USD: Currency.USD,
    AssetKind.PLAZO_FIJO: Currency.ARS,
    AssetKind.CEDEAR: Currency.ARS,
    AssetKind.CRYPTO: Currency.USD,
    AssetKind.STABLE: Currency.USD,
}


def native_currency(kind: AssetKind, explicit: Currency | None = None) -> Currency:
    """Native currency of a kind; yield wallets and funds honour ``explicit``."""
    fixed = _FIXED_NATIVE.get(kind)
    if fixed is not None:
        return fixed
    return explicit or Currency.ARS


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MoneyPair:
    """An amount expressed in both reference currencies."""

    ars: float = 0.0
    usd: float = 0.0

    def __add__(self, other: MoneyPair) -> MoneyPair:
        return MoneyPair(self.ars + other.ars, self.usd + other.usd)

    def __sub__(self, other: MoneyPair) -> MoneyPair:
        return MoneyPair(self.ars - other.ars, self.usd - other.usd)

    def __neg__(self) -> MoneyPair:
        return MoneyPair(-self.ars, -self.usd)

    def scale(self, factor: float) -> MoneyPair:
        return MoneyPair(self.ars * factor, self.usd * factor)

    def get(self, currency: Currency | str) -> float:
        if not isinstance(currency, Currency):
            currency = Currency(currency.upper())
        return self.usd if currency is Currency.USD else self.ars

    @classmethod
    def from_native(
        cls, amount: float, currency: Currency, rate: float | None,
    ) -> MoneyPair:
        """Build a pair from a native amount and an ARS-per-USD rate.

        Without a usable rate the counter side is 0.
        """
        usable = rate is not None and math.isfinite(rate) and rate > 0
        if currency is Currency.USD:
            return cls(ars=amount * rate if usable else 0.0, usd=amount)
        return cls(ars=amount, usd=amount / rate if usable else 0.0)


ZERO = MoneyPair()


def sum_pairs(pairs) -> MoneyPair:
    total = ZERO
    for pair in pairs:
        total = total + pair
    return total


@dataclass(frozen=True)
class PriceQuote:
    """Unit price with its quality metadata."""

    price: float | None = None
    status: PriceStatus = PriceStatus.OK
    source: str = ""
    as_of: datetime | None = None

    @property
    def is_usable(self) -> bool:
        return (
            self.price is not None
            and math.isfinite(self.price)
            and self.price > 0
            and self.status is not PriceStatus.MISSING
        )


# ---------------------------------------------------------------------------
# Kind-specific payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class YieldTerms:
    """Remunerated wallet terms (nominal annual rate in percent)."""

    tna: float | None = None
    tea: float | None = None
    last_accrued: date | None = None


@dataclass(frozen=True)
class FixedTermTerms:
    """Fixed-term deposit contract."""

    principal: float
    tna: float
    start_date: date
    maturity_date: date
    expected_interest: float | None = None
    bank: str = ""

    @property
    def term_days(self) -> int:
        return max((self.maturity_date - self.start_date).days, 0)

    @property
    def contracted_interest(self) -> float:
        if self.expected_interest is not None:
            return self.expected_interest
        if self.tna <= 0:
            return 0.0
        return self.principal * self.tna / 100 / 365 * self.term_days


@dataclass(frozen=True)
class FundTerms:
    """Mutual fund share metadata; ``vcp`` is the published share value."""

    instrument_id: str
    vcp: float | None = None
    vcp_date: date | None = None


HoldingTerms = YieldTerms | FixedTermTerms | FundTerms

_PAYLOAD_FOR_KIND: dict[AssetKind, type] = {
    AssetKind.WALLET_YIELD: YieldTerms,
    AssetKind.PLAZO_FIJO: FixedTermTerms,
    AssetKind.FCI: FundTerms,
}


# ---------------------------------------------------------------------------
# Holdings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawHolding:
    """One upstream position, before valuation."""

    account_id: str
    kind: AssetKind
    symbol: str
    account_name: str = ""
    account_type: AccountType = AccountType.OTHER
    item_id: str = ""
    label: str = ""
    quantity: float = 0.0
    balance: float | None = None
    price: PriceQuote = field(default_factory=PriceQuote)
    cost: MoneyPair | None = None
    currency: Currency | None = None
    terms: HoldingTerms | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", AssetKind(self.kind))
        object.__setattr__(self, "account_type", AccountType(self.account_type))
        if self.currency is not None:
            object.__setattr__(self, "currency", Currency(self.currency))

        expected = _PAYLOAD_FOR_KIND.get(self.kind)
        if self.terms is not None and (expected is None or not isinstance(self.terms, expected)):
            raise ValueError(
                f"{type(self.terms).__name__} payload is not valid for kind '{self.kind.value}'"
            )
        if self.kind is AssetKind.PLAZO_FIJO and self.terms is None:
            raise ValueError("plazo_fijo holdings require FixedTermTerms")

    @property
    def native_currency(self) -> Currency:
        return native_currency(self.kind, self.currency)

    @property
    def instrument_id(self) -> str:
        if isinstance(self.terms, FundTerms):
            return self.terms.instrument_id
        return self.symbol

    @property
    def yield_terms(self) -> YieldTerms | None:
        return self.terms if isinstance(self.terms, YieldTerms) else None

    @property
    def fixed_term(self) -> FixedTermTerms | None:
        return self.terms if isinstance(self.terms, FixedTermTerms) else None

    @property
    def fund(self) -> FundTerms | None:
        return self.terms if isinstance(self.terms, FundTerms) else None


@dataclass(frozen=True)
class Movement:
    """A realized transaction used for net income decomposition."""

    type: MovementType
    account_id: str
    amount: float
    currency: Currency
    timestamp: datetime
    symbol: str = ""
    fee_amount: float = 0.0
    fee_currency: Currency | None = None
    fx_rate: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", MovementType(self.type))
        object.__setattr__(self, "currency", Currency(self.currency))
        if self.fee_currency is not None:
            object.__setattr__(self, "fee_currency", Currency(self.fee_currency))

    @property
    def date(self) -> date:
        return self.timestamp.date()


# ---------------------------------------------------------------------------
# Asset keys
# ---------------------------------------------------------------------------

_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]+")
_DASHES = re.compile(r"-{2,}")

_KEY_PREFIX = {
    AssetKind.CEDEAR: "cedear",
    AssetKind.CRYPTO: "crypto",
    AssetKind.STABLE: "crypto",
    AssetKind.FCI: "fci",
    AssetKind.PLAZO_FIJO: "pf",
    AssetKind.WALLET_YIELD: "wallet",
    AssetKind.CASH_ARS: "wallet",
    AssetKind.CASH_USD: "wallet",
}


def _sanitize(value: str) -> str:
    cleaned = _DASHES.sub("-", _UNSAFE.sub("-", value.strip()))
    return cleaned.strip("-")


def build_asset_key(
    kind: AssetKind,
    account_id: str,
    symbol: str,
    *,
    instrument_id: str = "",
    item_id: str = "",
) -> str:
    """Stable ``prefix:account:symbol`` key used to match assets across snapshots.

    Independent of prices and rates. Funds key on the instrument id and
    fixed-term deposits on their item id, both lowercased.
    """
    kind = AssetKind(kind)
    account = _sanitize(account_id.lower()) or "unknown"
    if kind is AssetKind.FCI:
        tail = _sanitize((instrument_id or symbol).lower())
    elif kind is AssetKind.PLAZO_FIJO:
        tail = _sanitize((item_id or symbol).lower())
    else:
        tail = _sanitize(symbol.upper())
    return f"{_KEY_PREFIX[kind]}:{account}:{tail or 'UNKNOWN'}"


def holding_asset_key(holding: RawHolding) -> str:
    return build_asset_key(
        holding.kind,
        holding.account_id,
        holding.symbol,
        instrument_id=holding.instrument_id,
        item_id=holding.item_id,
    )
