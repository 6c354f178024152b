"""Huddle realtime chat core."""

__version__ = "0.1.0"
