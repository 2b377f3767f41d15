"""Workspace store domain manager.

Single source of truth for the open collections, which tree nodes are
expanded, the selected collection, the active request file and the autosave
preference. Every mutation is persisted and announced on the event bus.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable

from ...editor.tree_model import Collection, DirectoryTree, is_within, normalize_root
from ...errors import CollectionAlreadyOpenError
from ...services.workspace_state import WorkspaceSnapshot, WorkspaceStateStore
from ..events import (
    CollectionChoiceRequired,
    CollectionsChanged,
    EventBus,
    ExpandedNodesChanged,
    SelectionChanged,
)

LOGGER = logging.getLogger(__name__)


class SelectionOutcome(enum.Enum):
    KEPT = "kept"
    AUTO_SELECTED = "auto_selected"
    CHOICE_REQUIRED = "choice_required"
    EMPTY = "empty"


@dataclass(slots=True, frozen=True)
class SelectionResult:
    outcome: SelectionOutcome
    selected: str | None
    current_file_cleared: bool = False


class WorkspaceStore:
    """Domain manager for workspace state.

    Events Emitted:
        - CollectionsChanged: When a collection is added, removed or refreshed
        - SelectionChanged: When the selected collection changes
        - ExpandedNodesChanged: When a node is expanded or collapsed
        - CollectionChoiceRequired: When reconciliation finds several
          collections and no valid selection
    """

    def __init__(
        self,
        event_bus: EventBus,
        state_store: WorkspaceStateStore | None = None,
    ) -> None:
        self._bus = event_bus
        self._state_store = state_store
        self._collections: dict[str, Collection] = {}
        self._expanded: set[str] = set()
        self._selected: str | None = None
        self._current_file: str | None = None
        self._auto_save = True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def collections(self) -> tuple[Collection, ...]:
        return tuple(self._collections.values())

    @property
    def selected_collection_id(self) -> str | None:
        return self._selected

    @property
    def selected_collection(self) -> Collection | None:
        return self._collections.get(self._selected) if self._selected else None

    @property
    def current_file(self) -> str | None:
        return self._current_file

    @property
    def auto_save(self) -> bool:
        return self._auto_save

    @property
    def expanded(self) -> frozenset[str]:
        return frozenset(self._expanded)

    def collection_by_id(self, collection_id: str) -> Collection | None:
        return self._collections.get(collection_id)

    def collection_by_path(self, path: str) -> Collection | None:
        path = normalize_root(path)
        for collection in self._collections.values():
            if collection.path == path:
                return collection
        return None

    def owning_collection(self, path: str) -> Collection | None:
        """Return the collection whose root is ``path`` or an ancestor of it.

        When roots nest, the deepest one wins.
        """

        best: Collection | None = None
        for collection in self._collections.values():
            if collection.contains(path) and (best is None or len(collection.path) > len(best.path)):
                best = collection
        return best

    def find_node(self, path: str) -> DirectoryTree | None:
        collection = self.owning_collection(path)
        return collection.find(path) if collection is not None else None

    def is_expanded(self, path: str) -> bool:
        return path in self._expanded

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def add_collection(self, collection: Collection) -> Collection:
        """Track ``collection``; its root is expanded right away.

        Raises:
            CollectionAlreadyOpenError: If a collection with the same root
                path is already open.
        """

        if self.collection_by_path(collection.path) is not None:
            raise CollectionAlreadyOpenError(path=collection.path)
        self._collections[collection.id] = collection
        self._expanded.add(collection.path)
        LOGGER.debug("WorkspaceStore.add_collection: id=%s path=%s", collection.id, collection.path)
        self._persist()
        self._emit_collections()
        self._emit_expanded()
        return collection

    def replace_tree(self, collection_id: str, tree: DirectoryTree) -> None:
        collection = self._collections.get(collection_id)
        if collection is None:
            LOGGER.debug("Ignoring tree for unknown collection %s", collection_id)
            return
        collection.replace_tree(tree)
        self._emit_collections()

    def remove_collection(self, collection_id: str) -> bool:
        """Stop tracking a collection and everything that referenced it.

        Expanded paths at or under the root are dropped, the selection is
        cleared if it pointed here, and the active file is cleared if it
        lived under the root.

        Returns:
            ``True`` when the active file was cleared.
        """

        collection = self._collections.pop(collection_id, None)
        if collection is None:
            return False

        self._expanded = {path for path in self._expanded if not is_within(path, collection.path)}
        selection_changed = self._selected == collection_id
        if selection_changed:
            self._selected = None
        active_cleared = self._current_file is not None and is_within(self._current_file, collection.path)
        if active_cleared:
            self._current_file = None

        LOGGER.debug(
            "WorkspaceStore.remove_collection: id=%s active_cleared=%s", collection_id, active_cleared
        )
        self._persist()
        self._emit_collections()
        self._emit_expanded()
        if selection_changed:
            self._bus.publish(SelectionChanged(collection_id=None))
        return active_cleared

    # ------------------------------------------------------------------
    # Selection / active file / preferences
    # ------------------------------------------------------------------

    def select_collection(self, collection_id: str | None) -> None:
        if collection_id is not None and collection_id not in self._collections:
            raise KeyError(collection_id)
        if collection_id == self._selected:
            return
        self._selected = collection_id
        self._persist()
        self._bus.publish(SelectionChanged(collection_id=collection_id))

    def select_owner_of(self, path: str) -> Collection | None:
        owner = self.owning_collection(path)
        if owner is not None:
            self.select_collection(owner.id)
        return owner

    def set_current_file(self, path: str | None) -> None:
        if path == self._current_file:
            return
        self._current_file = path
        self._persist()

    def relocate_current_file(self, old_path: str, new_path: str) -> bool:
        """Rewrite the active path after ``old_path`` moved to ``new_path``."""

        current = self._current_file
        if current is None or not is_within(current, old_path):
            return False
        self.set_current_file(new_path + current[len(old_path):])
        return True

    def set_auto_save(self, enabled: bool) -> None:
        if enabled == self._auto_save:
            return
        self._auto_save = enabled
        self._persist()

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def expand(self, path: str) -> None:
        if path not in self._expanded:
            self._expanded.add(path)
            self._persist()
            self._emit_expanded()

    def collapse(self, path: str) -> None:
        if path in self._expanded:
            self._expanded.discard(path)
            self._persist()
            self._emit_expanded()

    def toggle_expanded(self, path: str) -> bool:
        """Flip ``path`` and return whether it is now expanded."""

        if path in self._expanded:
            self.collapse(path)
            return False
        self.expand(path)
        return True

    def relocate_expanded(self, old_path: str, new_path: str) -> None:
        moved = {path for path in self._expanded if is_within(path, old_path)}
        if not moved:
            return
        self._expanded -= moved
        self._expanded |= {new_path + path[len(old_path):] for path in moved}
        self._persist()
        self._emit_expanded()

    def forget_expanded(self, root: str) -> None:
        """Drop ``root`` and every expanded path beneath it."""

        remaining = {path for path in self._expanded if not is_within(path, root)}
        if remaining != self._expanded:
            self._expanded = remaining
            self._persist()
            self._emit_expanded()

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def apply_snapshot(self, snapshot: WorkspaceSnapshot, collections: Iterable[Collection]) -> None:
        """Install restored state in one step, without persisting."""

        self._collections = {collection.id: collection for collection in collections}
        roots = [collection.path for collection in self._collections.values()]
        self._expanded = {path for path in snapshot.expanded_nodes if any(is_within(path, root) for root in roots)}
        for collection in self._collections.values():
            self._expanded.add(collection.path)
        self._selected = snapshot.selected_collection
        self._current_file = snapshot.current_file
        self._auto_save = snapshot.auto_save
        self._emit_collections()
        self._emit_expanded()

    def reconcile_selection(self) -> SelectionResult:
        """Make the selection and active file consistent with the open collections."""

        current_cleared = False
        if self._current_file is not None and self.owning_collection(self._current_file) is None:
            LOGGER.debug("Active file %s is outside every open collection", self._current_file)
            self._current_file = None
            current_cleared = True

        if self._selected is not None and self._selected in self._collections:
            outcome, selected = SelectionOutcome.KEPT, self._selected
        elif len(self._collections) == 1:
            outcome, selected = SelectionOutcome.AUTO_SELECTED, next(iter(self._collections))
        elif self._collections:
            outcome, selected = SelectionOutcome.CHOICE_REQUIRED, None
        else:
            outcome, selected = SelectionOutcome.EMPTY, None

        changed = selected != self._selected
        self._selected = selected
        self._persist()
        if changed:
            self._bus.publish(SelectionChanged(collection_id=selected))
        if outcome is SelectionOutcome.CHOICE_REQUIRED:
            self._bus.publish(CollectionChoiceRequired(collection_ids=tuple(self._collections)))
        return SelectionResult(outcome=outcome, selected=selected, current_file_cleared=current_cleared)

    def snapshot(self) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(
            collections=[collection.ref() for collection in self._collections.values()],
            expanded_nodes=sorted(self._expanded),
            selected_collection=self._selected,
            current_file=self._current_file,
            auto_save=self._auto_save,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self._state_store is None:
            return
        try:
            self._state_store.save(self.snapshot())
        except OSError as exc:
            LOGGER.warning("Failed to persist workspace state to %s: %s", self._state_store.path, exc)

    def _emit_collections(self) -> None:
        self._bus.publish(CollectionsChanged(collection_ids=tuple(self._collections)))

    def _emit_expanded(self) -> None:
        self._bus.publish(ExpandedNodesChanged(expanded=frozenset(self._expanded)))


__all__ = ["WorkspaceStore", "SelectionOutcome", "SelectionResult"]
