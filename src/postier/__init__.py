"""Postier: HTTP requests kept as files in folder-backed collections."""

__version__ = "0.3.0"
