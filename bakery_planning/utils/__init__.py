"""Utility helpers (logging, paths)."""
