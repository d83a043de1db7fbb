"""Load a normalized portfolio document (YAML or JSON) into engine inputs.

Example::

    as_of: 2026-03-02T15:00:00
    rates:
      official: {buy: 1040, sell: 1090}
      mep: {buy: 1180, sell: 1200}
      crypto: {buy: 1210, sell: 1230}
    holdings:
      - account_id: iol
        account_type: broker
        kind: cedear
        symbol: AAPL
        quantity: 10
        price: 15000
        cost_ars: 120000
    movements:
      - {type: interest, account_id: mp, amount: 310.5, currency: ARS, timestamp: 2026-03-01T09:00:00}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from argfolio.engine.fx import FxOverride, FxPolicy, FxQuote, FxRates
from argfolio.engine.valuation import CommissionSettings
from argfolio.portfolio.holdings import (
    AccountType,
    AssetKind,
    Currency,
    FixedTermTerms,
    FundTerms,
    MoneyPair,
    Movement,
    MovementType,
    PriceQuote,
    PriceStatus,
    RawHolding,
    YieldTerms,
)

logger = logging.getLogger(__name__)


class PortfolioFileError(Exception):
    """The portfolio document could not be read or failed validation."""


# ---------------------------------------------------------------------------
# Document models
# ---------------------------------------------------------------------------

class QuoteModel(BaseModel):
    buy: float | None = None
    sell: float | None = None


class RatesModel(BaseModel):
    official: QuoteModel = Field(default_factory=QuoteModel)
    mep: QuoteModel = Field(default_factory=QuoteModel)
    crypto: QuoteModel = Field(default_factory=QuoteModel)
    updated_at: datetime | None = None

    def to_rates(self) -> FxRates:
        return FxRates(
            official=FxQuote(self.official.buy, self.official.sell),
            mep=FxQuote(self.mep.buy, self.mep.sell),
            crypto=FxQuote(self.crypto.buy, self.crypto.sell),
            updated_at=self.updated_at,
        )


class FixedTermModel(BaseModel):
    principal: float = Field(ge=0)
    tna: float
    start_date: date
    maturity_date: date
    expected_interest: float | None = None
    bank: str = ""

    @model_validator(mode="after")
    def maturity_after_start(self) -> "FixedTermModel":
        if self.maturity_date < self.start_date:
            raise ValueError("maturity_date must not precede start_date")
        return self


class FundModel(BaseModel):
    instrument_id: str
    vcp: float | None = None
    vcp_date: date | None = None


class HoldingModel(BaseModel):
    account_id: str
    kind: AssetKind
    symbol: str = ""
    account_name: str = ""
    account_type: AccountType = AccountType.OTHER
    item_id: str = ""
    label: str = ""
    quantity: float = 0.0
    balance: float | None = None
    price: float | None = None
    price_status: PriceStatus = PriceStatus.OK
    price_source: str = ""
    price_as_of: datetime | None = None
    cost_ars: float | None = None
    cost_usd: float | None = None
    currency: Currency | None = None
    tna: float | None = None
    tea: float | None = None
    last_accrued: date | None = None
    fixed_term: FixedTermModel | None = None
    fund: FundModel | None = None

    @model_validator(mode="after")
    def payload_matches_kind(self) -> "HoldingModel":
        if self.kind is AssetKind.PLAZO_FIJO and self.fixed_term is None:
            raise ValueError("plazo_fijo holdings need a fixed_term block")
        if self.fixed_term is not None and self.kind is not AssetKind.PLAZO_FIJO:
            raise ValueError(f"fixed_term is only valid for plazo_fijo, not {self.kind.value}")
        if self.fund is not None and self.kind is not AssetKind.FCI:
            raise ValueError(f"fund is only valid for fci, not {self.kind.value}")
        if self.tna is not None and self.kind is not AssetKind.WALLET_YIELD:
            raise ValueError(f"tna is only valid for wallet_yield, not {self.kind.value}")
        return self

    def to_holding(self) -> RawHolding:
        terms = None
        if self.kind is AssetKind.WALLET_YIELD:
            terms = YieldTerms(tna=self.tna, tea=self.tea, last_accrued=self.last_accrued)
        elif self.fixed_term is not None:
            terms = FixedTermTerms(**self.fixed_term.model_dump())
        elif self.fund is not None:
            terms = FundTerms(**self.fund.model_dump())

        cost = None
        if self.cost_ars is not None or self.cost_usd is not None:
            cost = MoneyPair(self.cost_ars or 0.0, self.cost_usd or 0.0)

        status = self.price_status
        if self.price is None and self.kind not in (
            AssetKind.CASH_ARS, AssetKind.CASH_USD, AssetKind.WALLET_YIELD, AssetKind.PLAZO_FIJO,
        ):
            status = PriceStatus.MISSING

        return RawHolding(
            account_id=self.account_id,
            kind=self.kind,
            symbol=self.symbol or self.kind.value.upper(),
            account_name=self.account_name,
            account_type=self.account_type,
            item_id=self.item_id,
            label=self.label,
            quantity=self.quantity,
            balance=self.balance,
            price=PriceQuote(self.price, status, self.price_source, self.price_as_of),
            cost=cost,
            currency=self.currency,
            terms=terms,
        )


class MovementModel(BaseModel):
    type: MovementType
    account_id: str
    amount: float
    currency: Currency = Currency.ARS
    timestamp: datetime
    symbol: str = ""
    fee_amount: float = 0.0
    fee_currency: Currency | None = None
    fx_rate: float | None = None

    def to_movement(self) -> Movement:
        return Movement(**self.model_dump())


class CommissionModel(BaseModel):
    buy_pct: float = Field(default=0.0, ge=0)
    sell_pct: float = Field(default=0.0, ge=0)
    fixed_ars: float = Field(default=0.0, ge=0)
    fixed_usd: float = Field(default=0.0, ge=0)


class OverrideModel(BaseModel):
    account_id: str
    kind: AssetKind
    family: str
    side: str = "V"

    def to_override(self) -> FxOverride:
        return FxOverride(self.account_id, self.kind, FxPolicy(self.family.lower(), self.side.upper()))


class PortfolioDocument(BaseModel):
    as_of: datetime | None = None
    rates: RatesModel = Field(default_factory=RatesModel)
    holdings: list[HoldingModel] = Field(default_factory=list)
    movements: list[MovementModel] = Field(default_factory=list)
    commissions: dict[str, CommissionModel] = Field(default_factory=dict)
    overrides: list[OverrideModel] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def coerce_none_to_defaults(cls, data: Any) -> Any:
        """YAML parses empty keys as None."""
        if isinstance(data, dict):
            for key in ("holdings", "movements", "overrides"):
                if key in data and data[key] is None:
                    data[key] = []
            if data.get("commissions", {}) is None:
                data["commissions"] = {}
        return data


# ---------------------------------------------------------------------------
# Engine inputs
# ---------------------------------------------------------------------------

@dataclass
class PortfolioInput:
    """Everything the engine needs, built from one document."""

    as_of: datetime
    rates: FxRates
    holdings: list[RawHolding] = field(default_factory=list)
    movements: list[Movement] = field(default_factory=list)
    commissions: dict[str, CommissionSettings] = field(default_factory=dict)
    overrides: list[FxOverride] = field(default_factory=list)


def parse_portfolio(raw: dict[str, Any], *, now: datetime | None = None) -> PortfolioInput:
    """Validate a decoded document and convert it to engine inputs."""
    try:
        doc = PortfolioDocument.model_validate(raw)
        return PortfolioInput(
            as_of=doc.as_of or now or datetime.now(),
            rates=doc.rates.to_rates(),
            holdings=[h.to_holding() for h in doc.holdings],
            movements=[m.to_movement() for m in doc.movements],
            commissions={
                k: CommissionSettings(**v.model_dump()) for k, v in doc.commissions.items()
            },
            overrides=[o.to_override() for o in doc.overrides],
        )
    except (ValidationError, ValueError) as e:
        raise PortfolioFileError(f"Invalid portfolio document: {e}") from e


def load_portfolio_file(path: str | Path, *, now: datetime | None = None) -> PortfolioInput:
    """Read a .yaml/.yml/.json portfolio document."""
    path = Path(path).expanduser()
    if not path.exists():
        raise PortfolioFileError(f"Portfolio file not found: {path}")

    try:
        text = path.read_text()
        if path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise PortfolioFileError(f"Could not read {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise PortfolioFileError(f"{path} must contain a mapping at the top level")

    result = parse_portfolio(raw, now=now)
    logger.info(
        "Loaded %d holdings and %d movements from %s",
        len(result.holdings), len(result.movements), path,
    )
    return result
