"""Chore Coins: recurring chore lifecycle engine for a parent/child reward app."""

__version__ = "1.0.0"
