"""Cadence: recurring task materialization service."""

__version__ = "1.0.0"
