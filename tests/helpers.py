"""Shared test helpers and stub collaborators.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

from typing import Any

from postier.editor.request_model import HTTPRequest, HTTPResponse, RequestDocument, serialize_document
from postier.editor.tree_model import Collection, DirectoryTree, FileSystemEntry, base_name, is_within, parent_path
from postier.errors import RequestExecutionError, StorageUnavailableError


class InMemoryStorage:
    """Storage backend over two dicts; records every mutating call.

    Has no ``move`` so renames take the copy-then-delete path.
    """

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.dirs: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.unreadable: set[str] = set()
        self.undeletable: set[str] = set()

    # -- setup helpers -------------------------------------------------
    def add_dir(self, path: str) -> None:
        while path and path != "/":
            self.dirs.add(path)
            path = parent_path(path)

    def add_file(self, path: str, content: str = "") -> None:
        self.files[path] = content
        self.add_dir(parent_path(path))

    def add_request(self, path: str, document: RequestDocument | None = None) -> None:
        self.add_file(path, serialize_document(document or RequestDocument.blank(base_name(path))))

    def snapshot(self, path: str) -> DirectoryTree:
        return self._build(path)

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "read_file"]

    # -- StorageBackend ------------------------------------------------
    async def get_directory_tree(self, root_path: str) -> DirectoryTree:
        if root_path in self.unreadable or (root_path not in self.dirs and root_path not in self.files):
            raise StorageUnavailableError(message=f"{root_path} is missing", path=root_path)
        return self._build(root_path)

    async def create_directory(self, path: str) -> None:
        self.calls.append(("create_directory", path))
        self.add_dir(path)

    async def create_file(self, path: str, content: str) -> None:
        self.calls.append(("create_file", path))
        self.add_file(path, content)

    async def read_file(self, path: str) -> str:
        self.calls.append(("read_file", path))
        if path not in self.files or path in self.unreadable:
            raise StorageUnavailableError(message=f"{path} is missing", path=path)
        return self.files[path]

    async def update_file(self, path: str, content: str) -> None:
        self.calls.append(("update_file", path))
        self.add_file(path, content)

    async def delete_file(self, path: str) -> None:
        self.calls.append(("delete_file", path))
        if path in self.undeletable:
            raise StorageUnavailableError(message=f"{path} is locked", path=path)
        if path not in self.files:
            raise StorageUnavailableError(message=f"{path} is missing", path=path)
        del self.files[path]

    async def delete_directory(self, path: str) -> None:
        self.calls.append(("delete_directory", path))
        if path in self.undeletable:
            raise StorageUnavailableError(message=f"{path} is locked", path=path)
        if path not in self.dirs:
            raise StorageUnavailableError(message=f"{path} is missing", path=path)
        self.dirs = {item for item in self.dirs if not is_within(item, path)}
        self.files = {key: value for key, value in self.files.items() if not is_within(key, path)}

    async def exists(self, path: str) -> bool:
        return path in self.dirs or path in self.files

    # -- internal ------------------------------------------------------
    def _build(self, path: str) -> DirectoryTree:
        is_dir = path in self.dirs
        entry = FileSystemEntry(
            name=base_name(path),
            path=path,
            is_dir=is_dir,
            size=len(self.files.get(path, "")),
        )
        if not is_dir:
            return DirectoryTree(entry=entry)
        names = {item for item in self.dirs | set(self.files) if parent_path(item) == path}
        children = [self._build(item) for item in names if item not in self.unreadable]
        children.sort(key=lambda node: (not node.is_dir, node.entry.name))
        return DirectoryTree(entry=entry, children=children)


class MovingStorage(InMemoryStorage):
    """In-memory storage that also offers an atomic ``move``."""

    async def move(self, old_path: str, new_path: str) -> None:
        self.calls.append(("move", old_path))
        self.files = {
            (new_path + key[len(old_path):] if is_within(key, old_path) else key): value
            for key, value in self.files.items()
        }
        self.dirs = {new_path + item[len(old_path):] if is_within(item, old_path) else item for item in self.dirs}


class StubExecutor:
    """HTTP executor stand-in returning a canned response or raising."""

    def __init__(self, response: HTTPResponse | None = None, *, error: Exception | None = None) -> None:
        self.response = response or HTTPResponse(status_code=200, status="200 OK", body="{}", size=2, duration=1500)
        self.error = error
        self.requests: list[HTTPRequest] = []
        self.closed = False

    async def execute(self, request: HTTPRequest) -> HTTPResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self) -> None:
        self.closed = True


def transport_failure(message: str = "connection refused") -> RequestExecutionError:
    return RequestExecutionError(message=message)


class Recorder:
    """Collects events of any type; subscribe ``recorder.record``."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def record(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


def make_collection(storage: InMemoryStorage, root: str, collection_id: str | None = None) -> Collection:
    """Build a collection straight from the in-memory tree under ``root``."""

    storage.add_dir(root)
    return Collection.from_tree(storage.snapshot(root), collection_id=collection_id)
