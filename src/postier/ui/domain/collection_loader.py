"""Builds and rebuilds collection tree snapshots from storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ...editor.tree_model import Collection, CollectionRef, DirectoryTree, normalize_root
from ...errors import CollectionAlreadyOpenError, StorageUnavailableError
from ...services.storage import StorageBackend
from .workspace_store import WorkspaceStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RestoreResult:
    """Outcome of reloading persisted collections.

    Attributes:
        collections: Collections whose trees were rebuilt, in persisted order.
        failed_names: Names of references that could not be loaded.
    """

    collections: list[Collection] = field(default_factory=list)
    failed_names: list[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_names)


class CollectionTreeLoader:
    """Reads directory trees through a :class:`StorageBackend`.

    Collections are always loaded one at a time; concurrent refreshes could
    interleave snapshots of the same root.
    """

    def __init__(self, storage: StorageBackend, store: WorkspaceStore) -> None:
        self._storage = storage
        self._store = store

    async def load(self, root_path: str) -> DirectoryTree:
        """Return a fresh snapshot of ``root_path``.

        Raises:
            StorageUnavailableError: If the root is missing, unreadable or
                not a directory.
        """

        tree = await self._storage.get_directory_tree(root_path)
        if not tree.is_dir:
            raise StorageUnavailableError(message=f"{root_path} is not a folder", path=root_path)
        return tree

    async def open_collection(self, root_path: str) -> Collection:
        """Load ``root_path`` and register it as a new collection.

        Raises:
            CollectionAlreadyOpenError: If the folder is already open.
            StorageUnavailableError: If the folder cannot be read.
        """

        root_path = normalize_root(root_path)
        if self._store.collection_by_path(root_path) is not None:
            raise CollectionAlreadyOpenError(path=root_path)
        tree = await self.load(root_path)
        collection = Collection.from_tree(tree)
        self._store.add_collection(collection)
        LOGGER.info("Opened collection %s (%s)", collection.name, collection.path)
        return collection

    async def restore(self, references: Iterable[CollectionRef]) -> RestoreResult:
        """Rebuild each persisted reference, keeping the ones that load."""

        result = RestoreResult()
        seen: set[str] = set()
        for ref in references:
            path = normalize_root(ref.path)
            if path in seen:
                LOGGER.debug("Skipping duplicate persisted collection %s", ref.path)
                continue
            seen.add(path)
            try:
                tree = await self.load(path)
            except StorageUnavailableError as exc:
                LOGGER.warning("Failed to restore collection %s: %s", ref.name, exc)
                result.failed_names.append(ref.name)
                continue
            result.collections.append(Collection(id=ref.id, name=ref.name, path=path, tree=tree))
        return result

    async def refresh(self, collection_id: str) -> bool:
        """Rebuild one collection's snapshot.

        On failure the previous snapshot stays in place and ``False`` is
        returned.
        """

        collection = self._store.collection_by_id(collection_id)
        if collection is None:
            return False
        try:
            tree = await self.load(collection.path)
        except StorageUnavailableError as exc:
            LOGGER.warning("Failed to refresh collection %s: %s", collection.name, exc)
            return False
        self._store.replace_tree(collection_id, tree)
        return True

    async def refresh_path(self, path: str) -> bool:
        """Refresh whichever collection owns ``path``."""

        owner = self._store.owning_collection(path)
        if owner is None:
            return False
        return await self.refresh(owner.id)

    async def refresh_all(self) -> list[str]:
        """Refresh every collection in order and return the ids that failed."""

        failed: list[str] = []
        for collection in self._store.collections:
            if not await self.refresh(collection.id):
                failed.append(collection.id)
        return failed


__all__ = ["CollectionTreeLoader", "RestoreResult"]
