"""Unified signal pipeline across chat, task trackers and business messaging."""

__version__ = "0.1.0"
