"""Establishment graph: people, their relationships, and session-gated editing."""

__version__ = "0.1.0"
