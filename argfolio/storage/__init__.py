"""SQLite persistence for snapshots and preferences."""
