"""Snapshot records and portfolio input files."""
