"""Domain layer.

Domain managers own workspace state and talk to storage; none of them import
Qt.

Domain Managers:
    - WorkspaceStore: Collections, expansion, selection, active file
    - CollectionTreeLoader: Builds tree snapshots from storage
    - TreeMutationService: Create/rename/delete inside collections
    - RequestDocumentController: Request editor state and dirty tracking
"""

from __future__ import annotations

from .collection_loader import CollectionTreeLoader, RestoreResult
from .request_controller import LoadState, RequestDocumentController
from .tree_mutations import TreeMutationService
from .workspace_store import SelectionOutcome, SelectionResult, WorkspaceStore

__all__: list[str] = [
    "CollectionTreeLoader",
    "RestoreResult",
    "LoadState",
    "RequestDocumentController",
    "TreeMutationService",
    "SelectionOutcome",
    "SelectionResult",
    "WorkspaceStore",
]
