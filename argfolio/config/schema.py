"""Pydantic models for config.yaml validation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from argfolio.config.defaults import (
    ACCOUNT_MERGE,
    CATEGORY_FX_LABELS,
    DATABASE_DEFAULTS,
    DRIVER_DEFAULTS,
    FX_POLICY,
    PROJECTION_HORIZONS,
    RISK_DEFAULTS,
    YIELD_DEFAULTS,
)

VALID_FAMILIES = ("official", "mep", "crypto")
VALID_SIDES = ("C", "V")


# ---------------------------------------------------------------------------
# FX Policy
# ---------------------------------------------------------------------------

class FxPolicyEntryConfig(BaseModel):
    family: str
    side: str = "V"

    @field_validator("family")
    @classmethod
    def family_known(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_FAMILIES:
            raise ValueError(f"Unknown fx family '{v}', expected one of {VALID_FAMILIES}")
        return v

    @field_validator("side")
    @classmethod
    def side_known(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_SIDES:
            raise ValueError(f"Unknown fx side '{v}', expected C or V")
        return v


class FxConfig(BaseModel):
    policy: dict[str, FxPolicyEntryConfig] = Field(
        default_factory=lambda: {
            kind: FxPolicyEntryConfig(**entry) for kind, entry in FX_POLICY.items()
        }
    )
    category_labels: dict[str, str] = Field(
        default_factory=lambda: dict(CATEGORY_FX_LABELS)
    )

    @model_validator(mode="after")
    def fill_missing_kinds(self) -> "FxConfig":
        for kind, entry in FX_POLICY.items():
            if kind not in self.policy:
                self.policy[kind] = FxPolicyEntryConfig(**entry)
        return self


# ---------------------------------------------------------------------------
# Accounts & Commissions
# ---------------------------------------------------------------------------

class AccountsConfig(BaseModel):
    merge_cash_ledgers: bool = True
    cash_suffix: str = ACCOUNT_MERGE["cash_suffix"]
    cash_name_suffix: str = ACCOUNT_MERGE["cash_name_suffix"]


class CommissionConfig(BaseModel):
    buy_pct: float = Field(default=0.0, ge=0.0)
    sell_pct: float = Field(default=0.0, ge=0.0)
    fixed_ars: float = Field(default=0.0, ge=0.0)
    fixed_usd: float = Field(default=0.0, ge=0.0)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

class DriversConfig(BaseModel):
    epsilon: float = DRIVER_DEFAULTS["epsilon"]
    timezone: str = DRIVER_DEFAULTS["timezone"]
    default_period: str = DRIVER_DEFAULTS["default_period"]


class YieldProjectionConfig(BaseModel):
    days_per_year: int = Field(default=YIELD_DEFAULTS["days_per_year"], gt=0)
    linear_preview_max_days: int = Field(
        default=YIELD_DEFAULTS["linear_preview_max_days"], gt=0
    )
    horizons: dict[str, int] = Field(
        default_factory=lambda: dict(PROJECTION_HORIZONS)
    )


class RiskConfig(BaseModel):
    min_observations: int = Field(default=RISK_DEFAULTS["min_observations"], ge=2)
    annualization_days: int = Field(default=RISK_DEFAULTS["annualization_days"], gt=0)
    risk_free_annual: float = RISK_DEFAULTS["risk_free_annual"]


# ---------------------------------------------------------------------------
# Database Config
# ---------------------------------------------------------------------------

class DatabaseConfig(BaseModel):
    path: str = DATABASE_DEFAULTS["path"]


# ---------------------------------------------------------------------------
# Top-Level Config
# ---------------------------------------------------------------------------

class ArgfolioConfig(BaseModel):
    """Root configuration model for the Argfolio application."""

    version: int = 1
    fx: FxConfig = Field(default_factory=FxConfig)
    accounts: AccountsConfig = Field(default_factory=AccountsConfig)
    commissions: dict[str, CommissionConfig] = Field(default_factory=dict)
    drivers: DriversConfig = Field(default_factory=DriversConfig)
    yield_projection: YieldProjectionConfig = Field(default_factory=YieldProjectionConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @model_validator(mode="before")
    @classmethod
    def coerce_none_to_defaults(cls, data: Any) -> Any:
        """YAML parses empty keys as None. Coerce to proper defaults."""
        if isinstance(data, dict):
            for key in ("commissions",):
                if key in data and data[key] is None:
                    data[key] = {}
            for key in ("fx", "accounts", "drivers", "yield_projection", "risk", "database"):
                if key in data and data[key] is None:
                    del data[key]
        return data
