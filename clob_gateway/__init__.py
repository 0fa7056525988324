"""Polymarket CLOB gateway: credential linking, order routing and reconciliation."""

__version__ = "1.0.0"
