"""Abacus - daily word-count tracking across synced devices."""

__version__ = "0.3.0"
