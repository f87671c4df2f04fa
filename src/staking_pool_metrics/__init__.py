"""Incremental financial metrics for a liquid staking pool and its protocol."""

__version__ = "0.1.0"
