"""Snapshot CLI commands: save, list, clear."""

from __future__ import annotations

import click


@click.group("snapshot")
def snapshot_group() -> None:
    """Save and manage daily portfolio snapshots."""
    pass


@snapshot_group.command("save")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--date", "date_key", default=None, help="Date key (YYYY-MM-DD); defaults to today")
@click.option("--force", is_flag=True, help="Save even if the valuation looks incomplete")
@click.pass_context
def snapshot_save(ctx: click.Context, portfolio_file: str, date_key: str | None, force: bool) -> None:
    """Value PORTFOLIO_FILE and store today's snapshot (replacing any for that date)."""
    from argfolio.cli.common import get_config, load_inputs, local_today, open_database, value_portfolio
    from argfolio.data.snapshot import SnapshotReadiness, build_snapshot, snapshot_readiness
    from argfolio.storage.stores import SqliteSnapshotStore

    config = get_config(ctx)
    inputs = load_inputs(portfolio_file)
    with open_database(config) as db:
        portfolio = value_portfolio(config, inputs, db)
        readiness = snapshot_readiness(portfolio)
        if readiness is not SnapshotReadiness.READY and not force:
            click.echo(
                f"Not saving snapshot: portfolio not ready ({readiness.value}). "
                "Use --force to override.",
                err=True,
            )
            raise SystemExit(1)

        snapshot = build_snapshot(portfolio, date_key=date_key or local_today(config).isoformat())
        SqliteSnapshotStore(db).save(snapshot)

    click.echo(
        f"Saved snapshot {snapshot.date_key}: "
        f"ARS {snapshot.total.ars:,.2f} / USD {snapshot.total.usd:,.2f} "
        f"({len(snapshot.breakdown_items)} assets)"
    )


@snapshot_group.command("list")
@click.pass_context
def snapshot_list(ctx: click.Context) -> None:
    """List saved snapshots."""
    from argfolio.cli.common import get_config, open_database
    from argfolio.storage.queries import list_snapshot_summaries

    config = get_config(ctx)
    with open_database(config) as db:
        rows = list_snapshot_summaries(db)

    if not rows:
        click.echo("No snapshots saved.")
        return
    click.echo(f"{'Date':<12} {'Total ARS':>18} {'Total USD':>14}  Source")
    click.echo("-" * 56)
    for row in rows:
        click.echo(
            f"{row['date_key']:<12} {row['total_ars']:>18,.2f} {row['total_usd']:>14,.2f}  {row['source']}"
        )


@snapshot_group.command("clear")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def snapshot_clear(ctx: click.Context, yes: bool) -> None:
    """Delete every saved snapshot."""
    from argfolio.cli.common import get_config, open_database
    from argfolio.storage.stores import SqliteSnapshotStore

    if not yes:
        click.confirm("Delete all snapshots?", abort=True)

    config = get_config(ctx)
    with open_database(config) as db:
        removed = SqliteSnapshotStore(db).clear()
    click.echo(f"Deleted {removed} snapshot(s).")
