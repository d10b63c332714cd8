"""Reconciliation agent for a shared, rate-limited pixel canvas."""

__version__ = "0.1.0"
