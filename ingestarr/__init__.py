# ingestarr/__init__.py
"""Ingestarr: idempotent import of incoming photos/videos into a dated library."""

__version__ = "0.4.0"
