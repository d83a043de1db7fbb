"""Shared helpers for CLI commands: config, database, valuation, output."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click

from argfolio.config.loader import ConfigError, load_config, resolve_path
from argfolio.config.schema import ArgfolioConfig
from argfolio.data.portfolio_file import (
    PortfolioFileError,
    PortfolioInput,
    load_portfolio_file,
)
from argfolio.engine.fx import InMemoryOverrideStore, policy_from_mapping
from argfolio.engine.valuation import CommissionSettings, Portfolio, aggregate
from argfolio.output.serialize import to_jsonable
from argfolio.storage.database import Database
from argfolio.storage.migrations import ensure_schema
from argfolio.storage.stores import SqliteOverrideStore, load_commissions

logger = logging.getLogger(__name__)


def get_config(ctx: click.Context) -> ArgfolioConfig:
    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.echo(f"Config validation failed: {e}", err=True)
        raise SystemExit(1) from None


def open_database(config: ArgfolioConfig) -> Database:
    """Open the configured database with its schema applied."""
    db = Database(resolve_path(config.database.path))
    ensure_schema(db)
    return db


def local_today(config: ArgfolioConfig) -> date:
    try:
        return datetime.now(ZoneInfo(config.drivers.timezone)).date()
    except ZoneInfoNotFoundError:
        logger.warning("Unknown timezone %s, using system date", config.drivers.timezone)
        return date.today()


def load_inputs(path: str) -> PortfolioInput:
    try:
        return load_portfolio_file(path)
    except PortfolioFileError as e:
        click.echo(str(e), err=True)
        raise SystemExit(1) from None


def value_portfolio(
    config: ArgfolioConfig,
    inputs: PortfolioInput,
    db: Database | None = None,
    *,
    merge: bool | None = None,
) -> Portfolio:
    """Aggregate ``inputs`` with overrides and commissions layered as
    config < database < portfolio file."""
    overrides = InMemoryOverrideStore()
    commissions = {
        provider_id: CommissionSettings(**c.model_dump())
        for provider_id, c in config.commissions.items()
    }
    if db is not None:
        for override in SqliteOverrideStore(db).all_overrides():
            overrides.set_override(override.account_id, override.kind, override.policy)
        commissions.update(load_commissions(db))
    for override in inputs.overrides:
        overrides.set_override(override.account_id, override.kind, override.policy)
    commissions.update(inputs.commissions)

    policy = policy_from_mapping({k: v.model_dump() for k, v in config.fx.policy.items()})
    return aggregate(
        inputs.holdings,
        overrides,
        rates=inputs.rates,
        as_of=inputs.as_of,
        commissions=commissions,
        policy=policy,
        merge_cash_ledgers=config.accounts.merge_cash_ledgers if merge is None else merge,
        cash_suffix=config.accounts.cash_suffix,
        cash_name_suffix=config.accounts.cash_name_suffix,
    )


def echo_json(data: Any) -> None:
    click.echo(json.dumps(to_jsonable(data), indent=2, ensure_ascii=False))
