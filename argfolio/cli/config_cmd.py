"""Config CLI commands: show, validate."""

from __future__ import annotations

import click


@click.group("config")
def config_group() -> None:
    """Manage configuration."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the resolved configuration."""
    from argfolio.cli.common import echo_json, get_config

    echo_json(get_config(ctx).model_dump())


@config_group.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate the config layers against the schema."""
    from argfolio.config.loader import ConfigError, config_sources, load_config

    path = ctx.obj.get("config_path")
    try:
        config = load_config(path)
    except ConfigError as e:
        click.echo(f"Config validation failed: {e}", err=True)
        raise SystemExit(1) from None

    click.echo("Config is valid.")
    sources = config_sources(path)
    click.echo(f"  Layers: {', '.join(str(p) for p in sources) if sources else 'defaults only'}")
    click.echo(f"  Version: {config.version}")
    policy = ", ".join(
        f"{kind}={entry.family}/{entry.side}" for kind, entry in sorted(config.fx.policy.items())
    )
    click.echo(f"  FX policy: {policy}")
    click.echo(f"  Commission providers: {len(config.commissions)}")
    click.echo(f"  Merge cash ledgers: {config.accounts.merge_cash_ledgers}")
    click.echo(f"  Database: {config.database.path}")
