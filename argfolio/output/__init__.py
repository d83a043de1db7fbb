"""Output generation: JSON-ready views of engine results.

Re-exports key public functions for convenience.
"""

from argfolio.output.serialize import (
    drivers_to_dict,
    earnings_to_dict,
    net_income_to_dict,
    portfolio_to_dict,
    to_jsonable,
)

__all__ = [
    "drivers_to_dict",
    "earnings_to_dict",
    "net_income_to_dict",
    "portfolio_to_dict",
    "to_jsonable",
]
