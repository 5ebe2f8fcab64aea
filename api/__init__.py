"""Pharmacy POS billing terminal API."""

__version__ = "0.1.0"
