"""Offline-first memory sharing core."""

__version__ = "0.1.0"
