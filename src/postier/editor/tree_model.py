"""Dataclasses mirroring collection directory trees."""

from __future__ import annotations

import posixpath
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

__all__ = [
    "FileSystemEntry",
    "DirectoryTree",
    "TreeIndex",
    "Collection",
    "CollectionRef",
    "generate_collection_id",
    "join_path",
    "parent_path",
    "base_name",
    "is_within",
    "normalize_root",
]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_collection_id() -> str:
    """Return an opaque client-side id such as ``collection_1700000000000_k3j9x0a1b``."""

    millis = int(time.time() * 1000)
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"collection_{millis}_{suffix}"


def join_path(directory: str, name: str) -> str:
    return f"{directory.rstrip('/')}/{name}" if directory != "/" else f"/{name}"


def normalize_root(path: str) -> str:
    """Collapse ``.``, ``..``, repeated and trailing separators in a folder path."""

    return posixpath.normpath(path) if path else path


def parent_path(path: str) -> str:
    index = path.rfind("/")
    if index <= 0:
        return "/" if index == 0 else ""
    return path[:index]


def base_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def is_within(path: str, root: str) -> bool:
    """Return ``True`` when ``path`` is ``root`` itself or lies beneath it."""

    if path == root:
        return True
    prefix = root if root.endswith("/") else f"{root}/"
    return path.startswith(prefix)


@dataclass(slots=True, frozen=True)
class FileSystemEntry:
    """A single file or directory as reported by the storage layer."""

    name: str
    path: str
    is_dir: bool
    size: int = 0
    modified: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "isDir": self.is_dir,
            "size": self.size,
            "modified": self.modified,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FileSystemEntry":
        return cls(
            name=str(payload.get("name", "")),
            path=str(payload.get("path", "")),
            is_dir=bool(payload.get("isDir", False)),
            size=int(payload.get("size") or 0),
            modified=int(payload.get("modified") or 0),
        )


@dataclass(slots=True)
class DirectoryTree:
    """Point-in-time snapshot of one directory (or a leaf file).

    ``children`` is ``None`` for files and a list, possibly empty, for
    directories. Snapshots are rebuilt on refresh, never patched.
    """

    entry: FileSystemEntry
    children: list["DirectoryTree"] | None = None

    @property
    def path(self) -> str:
        return self.entry.path

    @property
    def is_dir(self) -> bool:
        return self.entry.is_dir

    def has_children(self) -> bool:
        return bool(self.children)

    def child_names(self) -> set[str]:
        return {child.entry.name for child in self.children or ()}

    def walk(self) -> Iterator["DirectoryTree"]:
        """Yield this node and every descendant, depth first."""

        stack: list[DirectoryTree] = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"entry": self.entry.to_dict()}
        if self.children is not None:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DirectoryTree":
        entry = FileSystemEntry.from_dict(payload.get("entry") or {})
        raw_children = payload.get("children")
        children = None
        if raw_children is not None:
            children = [cls.from_dict(child) for child in raw_children]
        elif entry.is_dir:
            children = []
        return cls(entry=entry, children=children)


class TreeIndex:
    """Path-keyed lookup table built alongside a :class:`DirectoryTree` snapshot."""

    __slots__ = ("_nodes", "_parents")

    def __init__(self, tree: DirectoryTree | None = None) -> None:
        self._nodes: dict[str, DirectoryTree] = {}
        self._parents: dict[str, str] = {}
        if tree is not None:
            self._build(tree)

    def _build(self, tree: DirectoryTree) -> None:
        for node in tree.walk():
            self._nodes[node.path] = node
            for child in node.children or ():
                self._parents[child.path] = node.path

    def get(self, path: str) -> DirectoryTree | None:
        return self._nodes.get(path)

    def parent_of(self, path: str) -> DirectoryTree | None:
        parent = self._parents.get(path)
        return self._nodes.get(parent) if parent is not None else None

    def __contains__(self, path: object) -> bool:
        return path in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def paths(self) -> tuple[str, ...]:
        return tuple(self._nodes)


@dataclass(slots=True, frozen=True)
class CollectionRef:
    """Persisted form of a collection: the tree is never stored."""

    id: str
    name: str
    path: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "path": self.path}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CollectionRef | None":
        try:
            return cls(id=str(payload["id"]), name=str(payload["name"]), path=str(payload["path"]))
        except (KeyError, TypeError):
            return None


@dataclass(slots=True)
class Collection:
    """A user-opened folder tracked as a browsing root."""

    id: str
    name: str
    path: str
    tree: DirectoryTree
    index: TreeIndex = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.index = TreeIndex(self.tree)

    def replace_tree(self, tree: DirectoryTree) -> None:
        """Swap in a new snapshot and rebuild the path index with it."""

        index = TreeIndex(tree)
        self.tree = tree
        self.index = index

    def find(self, path: str) -> DirectoryTree | None:
        return self.index.get(path)

    def contains(self, path: str) -> bool:
        return is_within(path, self.path)

    def ref(self) -> CollectionRef:
        return CollectionRef(id=self.id, name=self.name, path=self.path)

    @classmethod
    def from_tree(cls, tree: DirectoryTree, *, collection_id: str | None = None) -> "Collection":
        return cls(
            id=collection_id or generate_collection_id(),
            name=tree.entry.name,
            path=tree.entry.path,
            tree=tree,
        )
