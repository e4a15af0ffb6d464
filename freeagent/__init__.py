"""Client and command-line tool for the FreeAgent accounting API."""

__version__ = "0.1.0"
