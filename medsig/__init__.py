"""Medication signature and unit conversion core."""

__version__ = "0.1.0"
