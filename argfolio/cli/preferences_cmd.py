"""Preference commands: fx overrides and provider commissions."""

from __future__ import annotations

import click

KINDS = [
    "cash_ars", "cash_usd", "wallet_yield", "plazo_fijo", "cedear", "crypto", "stable", "fci",
]


@click.group("override")
def override_group() -> None:
    """Manage per-account fx overrides."""
    pass


@override_group.command("set")
@click.argument("account_id")
@click.argument("kind", type=click.Choice(KINDS))
@click.argument("family", type=click.Choice(["official", "mep", "crypto"], case_sensitive=False))
@click.argument("side", type=click.Choice(["C", "V"], case_sensitive=False), default="V")
@click.pass_context
def override_set(ctx: click.Context, account_id: str, kind: str, family: str, side: str) -> None:
    """Use FAMILY/SIDE for every KIND holding in ACCOUNT_ID."""
    from argfolio.cli.common import get_config, open_database
    from argfolio.engine.fx import FxPolicy
    from argfolio.storage.stores import SqliteOverrideStore

    policy = FxPolicy(family.lower(), side.upper())
    config = get_config(ctx)
    with open_database(config) as db:
        SqliteOverrideStore(db).set_override(account_id, kind, policy)
    click.echo(f"Override {account_id}:{kind} -> {policy.label}")


@override_group.command("clear")
@click.argument("account_id")
@click.argument("kind", type=click.Choice(KINDS))
@click.pass_context
def override_clear(ctx: click.Context, account_id: str, kind: str) -> None:
    """Return ACCOUNT_ID/KIND to the automatic policy."""
    from argfolio.cli.common import get_config, open_database
    from argfolio.storage.stores import SqliteOverrideStore

    config = get_config(ctx)
    with open_database(config) as db:
        removed = SqliteOverrideStore(db).clear_override(account_id, kind)
    if removed:
        click.echo(f"Cleared override {account_id}:{kind}")
    else:
        click.echo(f"No override set for {account_id}:{kind}")


@override_group.command("list")
@click.pass_context
def override_list(ctx: click.Context) -> None:
    """List stored overrides."""
    from argfolio.cli.common import get_config, open_database
    from argfolio.storage.stores import SqliteOverrideStore

    config = get_config(ctx)
    with open_database(config) as db:
        overrides = SqliteOverrideStore(db).all_overrides()

    if not overrides:
        click.echo("No overrides (automatic policy everywhere).")
        return
    for override in overrides:
        click.echo(f"{override.key:<32} {override.policy.label}")


@click.group("commission")
def commission_group() -> None:
    """Manage provider commission settings."""
    pass


@commission_group.command("set")
@click.argument("provider_id")
@click.option("--buy-pct", type=float, default=0.0, show_default=True)
@click.option("--sell-pct", type=float, default=0.0, show_default=True)
@click.option("--fixed-ars", type=float, default=0.0, show_default=True)
@click.option("--fixed-usd", type=float, default=0.0, show_default=True)
@click.pass_context
def commission_set(
    ctx: click.Context,
    provider_id: str,
    buy_pct: float,
    sell_pct: float,
    fixed_ars: float,
    fixed_usd: float,
) -> None:
    """Store commissions for PROVIDER_ID (percent units)."""
    from argfolio.cli.common import get_config, open_database
    from argfolio.storage.queries import upsert_commission

    if min(buy_pct, sell_pct, fixed_ars, fixed_usd) < 0:
        click.echo("Commissions must be non-negative.", err=True)
        raise SystemExit(1)

    config = get_config(ctx)
    with open_database(config) as db:
        upsert_commission(
            db, provider_id,
            buy_pct=buy_pct, sell_pct=sell_pct, fixed_ars=fixed_ars, fixed_usd=fixed_usd,
        )
    click.echo(f"Commissions for {provider_id}: buy {buy_pct}%, sell {sell_pct}%")


@commission_group.command("list")
@click.pass_context
def commission_list(ctx: click.Context) -> None:
    """List stored commission settings."""
    from argfolio.cli.common import echo_json, get_config, open_database
    from argfolio.storage.queries import list_commissions

    config = get_config(ctx)
    with open_database(config) as db:
        echo_json(list_commissions(db))
