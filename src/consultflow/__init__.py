"""Consultation intake forms with draft auto-save for web agencies."""

__version__ = "0.1.0"
