"""Entitlement management for purchasable digital goods."""

__version__ = "0.1.0"
