"""Storage collaborator: directory trees and primitive file CRUD."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Protocol, TypeVar, runtime_checkable

from ..editor.tree_model import DirectoryTree, FileSystemEntry, join_path
from ..errors import StorageUnavailableError
from ..utils import file_io

__all__ = ["StorageBackend", "SupportsMove", "FolderPicker", "LocalFileStorage"]

LOGGER = logging.getLogger(__name__)
T = TypeVar("T")


@runtime_checkable
class StorageBackend(Protocol):
    """Operations the workspace engine needs from a storage layer.

    Every method raises :class:`StorageUnavailableError` on missing paths or
    permission problems.
    """

    async def get_directory_tree(self, root_path: str) -> DirectoryTree: ...

    async def create_directory(self, path: str) -> None: ...

    async def create_file(self, path: str, content: str) -> None: ...

    async def read_file(self, path: str) -> str: ...

    async def update_file(self, path: str, content: str) -> None: ...

    async def delete_file(self, path: str) -> None: ...

    async def delete_directory(self, path: str) -> None: ...

    async def exists(self, path: str) -> bool: ...


@runtime_checkable
class SupportsMove(Protocol):
    """Optional capability: an atomic rename of a file or directory."""

    async def move(self, old_path: str, new_path: str) -> None: ...


class FolderPicker(Protocol):
    """Native folder chooser. Returns ``None`` when the user cancels."""

    def open_folder_dialog(self) -> str | None: ...


class LocalFileStorage:
    """:class:`StorageBackend` over the local filesystem.

    Blocking calls run in a worker thread so the event loop stays responsive.
    """

    def __init__(self, *, skip_hidden: bool = False) -> None:
        self._skip_hidden = skip_hidden

    async def get_directory_tree(self, root_path: str) -> DirectoryTree:
        return await self._run(root_path, "access", lambda: self._build_tree(root_path))

    async def create_directory(self, path: str) -> None:
        await self._run(path, "create directory", lambda: os.makedirs(path, exist_ok=True))

    async def create_file(self, path: str, content: str) -> None:
        await self._run(path, "create file", lambda: file_io.write_text(path, content))

    async def read_file(self, path: str) -> str:
        return await self._run(path, "read file", lambda: file_io.read_text(path))

    async def update_file(self, path: str, content: str) -> None:
        await self._run(path, "update file", lambda: file_io.write_text(path, content))

    async def delete_file(self, path: str) -> None:
        await self._run(path, "delete file", lambda: os.remove(path))

    async def delete_directory(self, path: str) -> None:
        await self._run(path, "delete directory", lambda: shutil.rmtree(path))

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.lexists, path)

    async def move(self, old_path: str, new_path: str) -> None:
        def _move() -> None:
            if os.path.lexists(new_path):
                raise FileExistsError(17, "Target already exists", new_path)
            os.rename(old_path, new_path)

        await self._run(old_path, "move", _move)

    async def _run(self, path: str, action: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(func)
        except OSError as exc:
            LOGGER.debug("LocalFileStorage: %s failed for %s: %s", action, path, exc)
            raise StorageUnavailableError.from_os_error(path, exc, action=action) from exc

    def _build_tree(self, path: str) -> DirectoryTree:
        stat = os.stat(path)
        is_dir = os.path.isdir(path)
        entry = FileSystemEntry(
            name=Path(path).name or path,
            path=path,
            is_dir=is_dir,
            size=stat.st_size,
            modified=int(stat.st_mtime),
        )
        if not is_dir:
            return DirectoryTree(entry=entry)

        children: list[DirectoryTree] = []
        with os.scandir(path) as entries:
            for item in entries:
                if self._skip_hidden and item.name.startswith("."):
                    continue
                try:
                    children.append(self._build_tree(join_path(path, item.name)))
                except OSError as exc:
                    LOGGER.debug("Skipping unreadable entry %s: %s", item.path, exc)
        children.sort(key=lambda node: (not node.entry.is_dir, node.entry.name))
        return DirectoryTree(entry=entry, children=children)
