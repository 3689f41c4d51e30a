"""Crusade campaign progression and validation engine."""

__version__ = "0.3.0"
