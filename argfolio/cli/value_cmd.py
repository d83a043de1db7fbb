"""Value command: aggregate a portfolio file into the category rollup."""

from __future__ import annotations

import click


@click.command("value")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--merge/--no-merge", default=None, help="Merge cash sub-ledgers into their accounts")
@click.option(
    "--vnr",
    type=click.Choice(["buy", "sell"]),
    default=None,
    help="Include commission-adjusted net realizable values",
)
@click.pass_context
def value_cmd(ctx: click.Context, portfolio_file: str, merge: bool | None, vnr: str | None) -> None:
    """Value PORTFOLIO_FILE in ARS and USD."""
    from argfolio.cli.common import echo_json, get_config, load_inputs, open_database, value_portfolio
    from argfolio.engine.valuation import TradeSide
    from argfolio.output.serialize import portfolio_to_dict

    config = get_config(ctx)
    inputs = load_inputs(portfolio_file)
    with open_database(config) as db:
        portfolio = value_portfolio(config, inputs, db, merge=merge)

    echo_json(portfolio_to_dict(portfolio, TradeSide(vnr) if vnr else None))
