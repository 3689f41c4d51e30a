"""Utility helpers shared across the crusade engine."""
