"""Collection and tree use cases.

- OpenCollectionUseCase: Pick a folder and open it as a collection
- CloseCollectionUseCase: Close a collection and everything tied to it
- RefreshCollectionsUseCase: Rebuild one or all collection trees
- SelectNodeUseCase: React to a click on a tree node
- CreateNodeUseCase / RenameNodeUseCase / DeleteNodeUseCase: Tree edits
- RestoreWorkspaceUseCase: Rebuild the workspace at startup

Every use case is an action boundary: workspace errors are logged and turned
into a single :class:`NoticePosted` instead of propagating.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ...errors import PostierError
from ..events import EventBus, EventCoordinator, NoticePosted

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...editor.tree_model import Collection, DirectoryTree
    from ...services.storage import FolderPicker
    from ...services.workspace_state import WorkspaceStateStore
    from ..domain.collection_loader import CollectionTreeLoader, RestoreResult
    from ..domain.tree_mutations import TreeMutationService
    from ..domain.workspace_store import SelectionResult, WorkspaceStore

LOGGER = logging.getLogger(__name__)


class ConfirmationProvider(Protocol):
    """Asks the user before a recursive delete."""

    async def confirm_delete(self, node: DirectoryTree) -> bool:
        ...


def report_failure(bus: EventBus, action: str, exc: Exception) -> None:
    """Log ``exc`` and publish it as one notice."""

    if isinstance(exc, PostierError):
        title, message = exc.title, exc.message
    else:
        title, message = f"Failed to {action}", str(exc)
    LOGGER.warning("%s failed: %s", action, message)
    bus.publish(NoticePosted(title=title, message=message))


class OpenCollectionUseCase:
    """Open a folder as a new collection and select it.

    Events Emitted:
        - CollectionsChanged: Via the workspace store
        - NoticePosted: When the folder is already open or unreadable
    """

    __slots__ = ("_loader", "_store", "_picker", "_bus")

    def __init__(
        self,
        loader: CollectionTreeLoader,
        store: WorkspaceStore,
        picker: FolderPicker | None,
        event_bus: EventBus,
    ) -> None:
        self._loader = loader
        self._store = store
        self._picker = picker
        self._bus = event_bus

    async def execute(self, path: str | None = None) -> Collection | None:
        if path is None:
            if self._picker is None:
                LOGGER.debug("No folder picker available")
                return None
            path = self._picker.open_folder_dialog()
            if not path:
                return None
        try:
            collection = await self._loader.open_collection(path)
        except (PostierError, OSError) as exc:
            report_failure(self._bus, "open collection", exc)
            return None
        self._store.select_collection(collection.id)
        return collection


class CloseCollectionUseCase:
    """Close a collection; clears the editor when it held one of its files."""

    __slots__ = ("_store", "_coordinator")

    def __init__(self, store: WorkspaceStore, coordinator: EventCoordinator) -> None:
        self._store = store
        self._coordinator = coordinator

    def execute(self, collection_id: str) -> bool:
        if self._store.collection_by_id(collection_id) is None:
            LOGGER.debug("Close requested for unknown collection %s", collection_id)
            return False
        if self._store.remove_collection(collection_id):
            self._coordinator.notify_clear_active()
        return True


class RefreshCollectionsUseCase:
    """Refresh one collection, or all of them one after another."""

    __slots__ = ("_loader", "_store", "_bus")

    def __init__(self, loader: CollectionTreeLoader, store: WorkspaceStore, event_bus: EventBus) -> None:
        self._loader = loader
        self._store = store
        self._bus = event_bus

    async def execute(self, collection_id: str | None = None) -> list[str]:
        if collection_id is not None:
            failed = [] if await self._loader.refresh(collection_id) else [collection_id]
        else:
            failed = await self._loader.refresh_all()
        if failed:
            names = [self._name_of(item) for item in failed]
            self._bus.publish(
                NoticePosted(
                    title="Refresh failed",
                    message="The following collections could not be refreshed: " + ", ".join(names),
                    level="warning",
                )
            )
        return failed

    def _name_of(self, collection_id: str) -> str:
        collection = self._store.collection_by_id(collection_id)
        return collection.name if collection is not None else collection_id


class SelectNodeUseCase:
    """Handle a click on a tree node.

    A folder click clears the editor and toggles the folder; a file click
    asks the editor to load the file. Both select the owning collection.
    """

    __slots__ = ("_store", "_coordinator")

    def __init__(self, store: WorkspaceStore, coordinator: EventCoordinator) -> None:
        self._store = store
        self._coordinator = coordinator

    def execute(self, path: str, is_dir: bool) -> None:
        self._store.select_owner_of(path)
        if is_dir:
            self._coordinator.notify_clear_active()
            self._store.toggle_expanded(path)
            return
        self._coordinator.notify_load_file(path)


class CreateNodeUseCase:
    __slots__ = ("_mutations", "_bus")

    def __init__(self, mutations: TreeMutationService, event_bus: EventBus) -> None:
        self._mutations = mutations
        self._bus = event_bus

    async def execute(self, parent: str, is_dir: bool, name: str) -> str | None:
        try:
            return await self._mutations.create_node(parent, is_dir, name)
        except (PostierError, OSError, ValueError) as exc:
            report_failure(self._bus, "create", exc)
            return None


class RenameNodeUseCase:
    __slots__ = ("_mutations", "_bus")

    def __init__(self, mutations: TreeMutationService, event_bus: EventBus) -> None:
        self._mutations = mutations
        self._bus = event_bus

    async def execute(self, old_path: str, is_dir: bool, new_name: str) -> str | None:
        try:
            return await self._mutations.rename_node(old_path, is_dir, new_name)
        except (PostierError, OSError, ValueError) as exc:
            report_failure(self._bus, "rename", exc)
            return None


class DeleteNodeUseCase:
    """Delete a node, asking for confirmation when it is a non-empty folder."""

    __slots__ = ("_mutations", "_confirmation", "_bus")

    def __init__(
        self,
        mutations: TreeMutationService,
        confirmation: ConfirmationProvider | None,
        event_bus: EventBus,
    ) -> None:
        self._mutations = mutations
        self._confirmation = confirmation
        self._bus = event_bus

    async def execute(self, path: str) -> bool:
        confirm = self._confirmation.confirm_delete if self._confirmation is not None else None
        try:
            return await self._mutations.delete_node(path, confirm=confirm)
        except (PostierError, OSError) as exc:
            report_failure(self._bus, "delete", exc)
            return False


@dataclass(slots=True)
class WorkspaceRestoreResult:
    restore: RestoreResult
    selection: SelectionResult


class RestoreWorkspaceUseCase:
    """Rebuild collections from persisted state at startup.

    Collections that fail to load are dropped and reported in one notice.
    The selection is then reconciled and, when an active file survived, the
    editor is asked to load it.
    """

    __slots__ = ("_state_store", "_loader", "_store", "_coordinator")

    def __init__(
        self,
        state_store: WorkspaceStateStore,
        loader: CollectionTreeLoader,
        store: WorkspaceStore,
        coordinator: EventCoordinator,
    ) -> None:
        self._state_store = state_store
        self._loader = loader
        self._store = store
        self._coordinator = coordinator

    async def execute(self) -> WorkspaceRestoreResult:
        snapshot = self._state_store.load()
        result = await self._loader.restore(snapshot.collections)
        self._store.apply_snapshot(snapshot, result.collections)
        selection = self._store.reconcile_selection()
        LOGGER.info(
            "Restored %d collection(s), %d failed",
            len(result.collections),
            len(result.failed_names),
        )
        if result.has_failures:
            self._coordinator.publish(
                NoticePosted(
                    title="Failed to load collections",
                    message=(
                        "The following collections could not be loaded and were removed "
                        "from the workspace: " + ", ".join(result.failed_names)
                    ),
                    level="warning",
                )
            )
        current = self._store.current_file
        if current is not None:
            self._coordinator.notify_load_file(current)
        return WorkspaceRestoreResult(restore=result, selection=selection)


__all__ = [
    "ConfirmationProvider",
    "OpenCollectionUseCase",
    "CloseCollectionUseCase",
    "RefreshCollectionsUseCase",
    "SelectNodeUseCase",
    "CreateNodeUseCase",
    "RenameNodeUseCase",
    "DeleteNodeUseCase",
    "RestoreWorkspaceUseCase",
    "WorkspaceRestoreResult",
    "report_failure",
]
