"""Argfolio -- valuation and historical analytics for ARS/USD portfolios."""

__version__ = "0.1.0"
