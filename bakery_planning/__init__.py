"""Bakery weekly production planning engine."""

__version__ = "1.0.0"
