"""Operator tooling for the home-ops cluster."""

__version__ = "0.1.0"
