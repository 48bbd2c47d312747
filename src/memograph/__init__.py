"""Memograph: interactive memory graph over personal notes."""

__version__ = "0.1.0"
