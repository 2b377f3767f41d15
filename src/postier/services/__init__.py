"""Collaborators at the edge of the workspace: storage, HTTP, persistence."""
