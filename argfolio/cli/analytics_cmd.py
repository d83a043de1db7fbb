"""Analytics commands: drivers, income, earnings, project, risk."""

from __future__ import annotations

import click

PERIODS = ["24H", "1D", "7D", "30D", "90D", "1Y", "MTD", "YTD", "ALL"]


def _valued(ctx: click.Context, portfolio_file: str):
    """(config, inputs, portfolio, snapshots) for a portfolio file."""
    from argfolio.cli.common import get_config, load_inputs, open_database, value_portfolio
    from argfolio.storage.stores import SqliteSnapshotStore

    config = get_config(ctx)
    inputs = load_inputs(portfolio_file)
    with open_database(config) as db:
        portfolio = value_portfolio(config, inputs, db)
        snapshots = SqliteSnapshotStore(db).list_snapshots()
    return config, inputs, portfolio, snapshots


@click.command("drivers")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--period", "-p", type=click.Choice(PERIODS, case_sensitive=False), default="30D")
@click.pass_context
def drivers_cmd(ctx: click.Context, portfolio_file: str, period: str) -> None:
    """Per-category drivers of value change over a period."""
    from argfolio.cli.common import echo_json, local_today
    from argfolio.engine.drivers import compute_drivers
    from argfolio.output.serialize import drivers_to_dict

    config, inputs, portfolio, snapshots = _valued(ctx, portfolio_file)
    result = compute_drivers(
        portfolio,
        snapshots,
        period,
        today=local_today(config),
        movements=inputs.movements,
        epsilon=config.drivers.epsilon,
    )
    echo_json(drivers_to_dict(result))


@click.command("income")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--period", "-p", type=click.Choice(PERIODS, case_sensitive=False), default="30D")
@click.pass_context
def income_cmd(ctx: click.Context, portfolio_file: str, period: str) -> None:
    """Net income split into interest, fees, and variation."""
    from argfolio.cli.common import echo_json, local_today
    from argfolio.engine.drivers import compute_net_income
    from argfolio.output.serialize import net_income_to_dict

    config, inputs, portfolio, snapshots = _valued(ctx, portfolio_file)
    income = compute_net_income(
        portfolio, snapshots, inputs.movements, period, today=local_today(config),
    )
    echo_json(net_income_to_dict(income))


@click.command("earnings")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--horizon", "-h", default="30D", help="1D, 7D, 30D, 90D, 1Y or <N>D")
@click.pass_context
def earnings_cmd(ctx: click.Context, portfolio_file: str, horizon: str) -> None:
    """Projected yield per category with prices held constant."""
    from argfolio.cli.common import echo_json, local_today
    from argfolio.engine.drivers import compute_projected_earnings
    from argfolio.output.serialize import earnings_to_dict

    config, _inputs, portfolio, _snapshots = _valued(ctx, portfolio_file)
    try:
        earnings = compute_projected_earnings(
            portfolio,
            horizon,
            today=local_today(config),
            linear_max_days=config.yield_projection.linear_preview_max_days,
        )
    except ValueError as e:
        click.echo(str(e), err=True)
        raise SystemExit(1) from None
    echo_json(earnings_to_dict(earnings))


@click.command("project")
@click.option("--tna", type=float, required=True, help="Nominal annual rate, percent")
@click.option("--principal", type=float, required=True)
@click.option("--days", type=int, default=30, show_default=True)
@click.option("--compounded", is_flag=True, help="Compound daily instead of simple interest")
@click.pass_context
def project_cmd(ctx: click.Context, tna: float, principal: float, days: int, compounded: bool) -> None:
    """Project interest for a principal at a nominal annual rate."""
    from argfolio.cli.common import echo_json, get_config
    from argfolio.engine.yield_projection import project

    config = get_config(ctx)
    echo_json(project(
        tna, principal, days,
        compounded=compounded,
        days_per_year=config.yield_projection.days_per_year,
    ))


@click.command("risk")
@click.option("--currency", type=click.Choice(["ars", "usd"]), default="ars", show_default=True)
@click.pass_context
def risk_cmd(ctx: click.Context, currency: str) -> None:
    """Volatility, max drawdown, and Sharpe from saved snapshots."""
    from argfolio.cli.common import echo_json, get_config, open_database
    from argfolio.engine.risk import compute_risk_metrics
    from argfolio.storage.stores import SqliteSnapshotStore

    config = get_config(ctx)
    with open_database(config) as db:
        snapshots = SqliteSnapshotStore(db).list_snapshots()

    echo_json(compute_risk_metrics(
        snapshots,
        currency,
        risk_free_annual=config.risk.risk_free_annual,
        min_observations=config.risk.min_observations,
        annualization_days=config.risk.annualization_days,
    ))
