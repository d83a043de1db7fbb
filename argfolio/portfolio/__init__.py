"""Holding records and portfolio data types."""
