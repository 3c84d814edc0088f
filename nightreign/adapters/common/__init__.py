"""Helpers shared by the inbound adapters."""
