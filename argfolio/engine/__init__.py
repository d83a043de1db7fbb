"""Valuation and analytics engine.

Pure functions only: no I/O, no shared state.

Public API:
  aggregate             Raw holdings -> Portfolio rollup
  resolve_rate          (family, side) -> rate
  project               Yield projection for a nominal annual rate
  compute_risk_metrics  Volatility / drawdown / Sharpe from snapshots

The drivers engine lives in ``argfolio.engine.drivers``.
"""

from argfolio.engine.fx import FxFamily, FxRates, FxSide, resolve_rate
from argfolio.engine.risk import compute_risk_metrics
from argfolio.engine.valuation import Portfolio, aggregate
from argfolio.engine.yield_projection import project

__all__ = [
    "FxFamily",
    "FxRates",
    "FxSide",
    "Portfolio",
    "aggregate",
    "compute_risk_metrics",
    "project",
    "resolve_rate",
]
