"""Integration sync scheduling and event notification core."""

__version__ = "1.0.0"
