"""Shared helpers: time, parsing and locking."""
