"""Periodic prize raffle driven by an external verifiable randomness oracle."""

__version__ = "0.1.0"
