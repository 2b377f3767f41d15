"""Application layer: one use case per user action.

Use cases receive their collaborators through the constructor, call into the
domain layer and report failures as notices on the event bus.
"""

from __future__ import annotations

from .collection_ops import (
    CloseCollectionUseCase,
    CreateNodeUseCase,
    DeleteNodeUseCase,
    OpenCollectionUseCase,
    RefreshCollectionsUseCase,
    RenameNodeUseCase,
    RestoreWorkspaceUseCase,
    SelectNodeUseCase,
)
from .request_ops import SaveRequestAsUseCase, SaveRequestUseCase, SendRequestUseCase

__all__: list[str] = [
    "CloseCollectionUseCase",
    "CreateNodeUseCase",
    "DeleteNodeUseCase",
    "OpenCollectionUseCase",
    "RefreshCollectionsUseCase",
    "RenameNodeUseCase",
    "RestoreWorkspaceUseCase",
    "SelectNodeUseCase",
    "SaveRequestAsUseCase",
    "SaveRequestUseCase",
    "SendRequestUseCase",
]
