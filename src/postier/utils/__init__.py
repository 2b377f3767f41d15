"""Utility helpers shared across Postier."""
