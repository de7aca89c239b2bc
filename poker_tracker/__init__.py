"""Poker session tracking server."""

__version__ = "1.0.0"
