"""Top-level CLI entry point for Argfolio."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from argfolio import __version__


@click.group()
@click.version_option(version=__version__, prog_name="argfolio")
@click.option(
    "--config",
    type=click.Path(),
    default=None,
    envvar="ARGFOLIO_CONFIG",
    help="Path to config.yaml",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Argfolio -- portfolio valuation and analytics in ARS and USD."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# Register sub-commands
from argfolio.cli.analytics_cmd import (  # noqa: E402
    drivers_cmd,
    earnings_cmd,
    income_cmd,
    project_cmd,
    risk_cmd,
)
from argfolio.cli.config_cmd import config_group  # noqa: E402
from argfolio.cli.preferences_cmd import commission_group, override_group  # noqa: E402
from argfolio.cli.snapshot_cmd import snapshot_group  # noqa: E402
from argfolio.cli.value_cmd import value_cmd  # noqa: E402

cli.add_command(commission_group, "commission")
cli.add_command(config_group, "config")
cli.add_command(drivers_cmd, "drivers")
cli.add_command(earnings_cmd, "earnings")
cli.add_command(income_cmd, "income")
cli.add_command(override_group, "override")
cli.add_command(project_cmd, "project")
cli.add_command(risk_cmd, "risk")
cli.add_command(snapshot_group, "snapshot")
cli.add_command(value_cmd, "value")


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize Argfolio: create the database and an example config."""
    from argfolio.cli.common import get_config, open_database
    from argfolio.storage.queries import upsert_commission

    config = get_config(ctx)

    argfolio_dir = Path("~/.argfolio").expanduser()
    argfolio_dir.mkdir(parents=True, exist_ok=True)

    db = open_database(config)
    with db:
        click.echo(f"  Database: {db.path}")
        click.echo(f"  Schema version: {db.schema_version()}")
        counts = db.row_counts()
        click.echo(
            f"  Stored: {counts['snapshots']} snapshot(s), "
            f"{counts['fx_overrides']} FX override(s), {counts['commissions']} commission setting(s)"
        )

        for provider_id, commission in config.commissions.items():
            upsert_commission(db, provider_id, **commission.model_dump())
        if config.commissions:
            click.echo(f"  Seeded commissions for {len(config.commissions)} provider(s)")

    user_config = argfolio_dir / "config.yaml"
    if not user_config.exists():
        example = Path(__file__).parent.parent.parent / "argfolio.yaml.example"
        if example.exists():
            import shutil
            shutil.copy2(example, user_config)
            click.echo(f"  Copied example config to {user_config}")

    click.echo("\nArgfolio initialized successfully.")
    click.echo("Next steps:")
    click.echo("  1. Export your holdings to a portfolio.yaml")
    click.echo("  2. Run: argfolio value portfolio.yaml")
    click.echo("  3. Run: argfolio snapshot save portfolio.yaml  (daily, to build history)")
