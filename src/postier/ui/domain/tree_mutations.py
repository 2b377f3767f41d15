"""Create, rename and delete nodes inside open collections."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from ...editor.request_model import (
    REQUEST_FILE_EXTENSION,
    RequestDocument,
    serialize_document,
    strip_extension,
)
from ...editor.tree_model import DirectoryTree, base_name, is_within, join_path, parent_path
from ...errors import NameConflictError, PartialRenameError, StorageUnavailableError
from ...services.storage import StorageBackend, SupportsMove
from ..events import EventCoordinator
from .collection_loader import CollectionTreeLoader
from .workspace_store import WorkspaceStore

LOGGER = logging.getLogger(__name__)

ConfirmCallback = Callable[[DirectoryTree], Awaitable[bool]]


class TreeMutationService:
    """Structural edits on the collection trees, routed through storage.

    Name conflicts are detected against the parent's snapshot (and storage)
    before anything is written. Every operation selects the collection that
    owns the touched path.
    """

    def __init__(
        self,
        storage: StorageBackend,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        *,
        coordinator: EventCoordinator | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        self._storage = storage
        self._store = store
        self._loader = loader
        self._coordinator = coordinator
        self._confirm = confirm

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_node(self, parent: str, is_dir: bool, candidate_name: str) -> str:
        """Create a folder or a blank request file under ``parent``.

        Returns:
            The path of the new node.

        Raises:
            ValueError: If the name is blank.
            NameConflictError: If ``parent`` already has a child of that name.
            StorageUnavailableError: If storage rejects the write.
        """

        name = candidate_name.strip()
        if not is_dir:
            stem = strip_extension(name).strip()
            name = f"{stem}{REQUEST_FILE_EXTENSION}" if stem else ""
        if not name or "/" in name:
            raise ValueError(f"Invalid name: {candidate_name!r}")

        target = join_path(parent, name)
        self._store.select_owner_of(parent)
        await self._check_conflict(parent, name, target)

        if is_dir:
            await self._storage.create_directory(target)
        else:
            document = RequestDocument.blank(name=strip_extension(name))
            await self._storage.create_file(target, serialize_document(document))
        LOGGER.debug("Created %s %s", "folder" if is_dir else "request", target)

        self._store.expand(parent)
        await self._loader.refresh_path(parent)
        return target

    # ------------------------------------------------------------------
    # Rename
    # ------------------------------------------------------------------

    async def rename_node(self, old_path: str, is_dir: bool, new_base_name: str) -> str:
        """Rename a node in place, keeping a file's extension.

        Returns:
            The new path, or ``old_path`` when nothing changed.

        Raises:
            NameConflictError: If a sibling already uses the new name.
            PartialRenameError: If the copy succeeded but the old path could
                not be removed.
        """

        base = new_base_name.strip()
        if not base:
            return old_path
        if "/" in base:
            raise ValueError(f"Invalid name: {new_base_name!r}")

        old_name = base_name(old_path)
        if is_dir:
            new_name = base
        else:
            extension = old_name[len(strip_extension(old_name)):]
            new_name = base if extension and base.endswith(extension) else f"{base}{extension}"
        directory = parent_path(old_path)
        new_path = join_path(directory, new_name)
        self._store.select_owner_of(old_path)
        if new_path == old_path:
            return old_path

        await self._check_conflict(directory, new_name, new_path)

        if isinstance(self._storage, SupportsMove):
            await self._storage.move(old_path, new_path)
        else:
            await self._copy(old_path, new_path, is_dir)
            await self._remove_after_copy(old_path, new_path, is_dir)
        LOGGER.debug("Renamed %s -> %s", old_path, new_path)

        self._store.relocate_expanded(old_path, new_path)
        if self._store.relocate_current_file(old_path, new_path) and self._coordinator is not None:
            self._coordinator.notify_active_moved(old_path, new_path)
        self._store.select_owner_of(new_path)
        await self._loader.refresh_all()
        return new_path

    async def _copy(self, old_path: str, new_path: str, is_dir: bool) -> None:
        if not is_dir:
            content = await self._storage.read_file(old_path)
            await self._storage.create_file(new_path, content)
            return
        tree = await self._storage.get_directory_tree(old_path)
        for node in tree.walk():
            target = new_path + node.path[len(old_path):]
            if node.is_dir:
                await self._storage.create_directory(target)
            else:
                await self._storage.create_file(target, await self._storage.read_file(node.path))

    async def _remove_after_copy(self, old_path: str, new_path: str, is_dir: bool) -> None:
        last_error: StorageUnavailableError | None = None
        for attempt in range(2):
            try:
                await self._remove(old_path, is_dir)
            except StorageUnavailableError as exc:
                LOGGER.warning("Removing %s after copy failed (attempt %d): %s", old_path, attempt + 1, exc)
                last_error = exc
            if not await self._storage.exists(old_path):
                return
        raise PartialRenameError(
            message=f"{new_path} was created but {old_path} could not be removed",
            details={"reason": str(last_error)} if last_error else {},
            old_path=old_path,
            new_path=new_path,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_node(self, path: str, confirm: ConfirmCallback | None = None) -> bool:
        """Delete a file or folder.

        A folder with children is only removed after ``confirm`` (or the
        callback given at construction) returns ``True``.

        Returns:
            ``True`` when something was deleted.
        """

        node = self._store.find_node(path)
        if node is None:
            node = await self._storage.get_directory_tree(path)
        self._store.select_owner_of(path)

        if node.is_dir and node.has_children():
            callback = confirm or self._confirm
            if callback is None:
                LOGGER.warning("Refusing to delete non-empty folder %s without confirmation", path)
                return False
            if not await callback(node):
                LOGGER.debug("Deletion of %s declined", path)
                return False

        if node.is_dir:
            await self._storage.delete_directory(path)
        else:
            await self._storage.delete_file(path)
        LOGGER.debug("Deleted %s", path)

        current = self._store.current_file
        if current is not None and is_within(current, path):
            self._store.set_current_file(None)
            if self._coordinator is not None:
                self._coordinator.notify_clear_active()
        self._store.forget_expanded(path)
        await self._loader.refresh_path(path)
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _check_conflict(self, directory: str, name: str, target: str) -> None:
        parent = self._store.find_node(directory)
        if parent is not None and not parent.is_dir:
            raise ValueError(f"{directory} is not a folder")
        if (parent is not None and name in parent.child_names()) or await self._storage.exists(target):
            raise NameConflictError(
                message=f"A file or folder named {name!r} already exists in {directory}",
                path=target,
            )

    async def _remove(self, path: str, is_dir: bool) -> None:
        if is_dir:
            await self._storage.delete_directory(path)
        else:
            await self._storage.delete_file(path)


__all__ = ["TreeMutationService", "ConfirmCallback"]
