"""Clinic ledger: treatment billing engine and end-of-day settlement."""

__version__ = "0.1.0"
