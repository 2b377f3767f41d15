"""Workspace engine behind the request editor and the collection tree."""
