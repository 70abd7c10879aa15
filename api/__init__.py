"""Outbound attribution and reconciliation billing API."""

__version__ = "0.1.0"
