"""Funnel traffic simulation and metrics engine."""

__version__ = "0.1.0"
