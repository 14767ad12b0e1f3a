"""Conjunction screening and space-weather threat tracking for a small satellite fleet."""

__version__ = "1.0.0"
