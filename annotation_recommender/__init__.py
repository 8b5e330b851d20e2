"""Recommendation pipeline for machine-assisted document annotation."""

__version__ = "0.1.0"
