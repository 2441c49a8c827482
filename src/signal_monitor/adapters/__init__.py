"""Adapters for external tools."""
