"""Error types raised by the workspace engine.

Domain services raise these; the application layer catches them at the
action boundary and turns them into a single user-facing notice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for machine-readable error codes."""

    STORAGE_UNAVAILABLE = "storage_unavailable"
    NAME_CONFLICT = "name_conflict"
    NO_COLLECTION_SELECTED = "no_collection_selected"
    NO_ACTIVE_FILE = "no_active_file"
    REQUEST_EXECUTION_FAILED = "request_execution_failed"
    PARTIAL_RENAME = "partial_rename"
    COLLECTION_ALREADY_OPEN = "collection_already_open"
    INVALID_REQUEST_FILE = "invalid_request_file"


@dataclass
class PostierError(Exception):
    """Base exception for all workspace errors.

    Attributes:
        code: Machine-readable error identifier.
        message: Human-readable description shown in notices.
        details: Additional structured information for logs.
    """

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    title: ClassVar[str] = "Error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


@dataclass
class StorageUnavailableError(PostierError):
    """A path is missing or cannot be accessed."""

    code: str = field(default=ErrorCode.STORAGE_UNAVAILABLE)
    message: str = field(default="The path is missing or inaccessible")
    details: dict[str, Any] = field(default_factory=dict)
    path: str | None = field(default=None)

    title: ClassVar[str] = "Storage unavailable"

    @classmethod
    def from_os_error(cls, path: str, exc: OSError, *, action: str = "access") -> "StorageUnavailableError":
        reason = exc.strerror or str(exc)
        return cls(
            message=f"Failed to {action} {path}: {reason}",
            details={"errno": exc.errno},
            path=path,
        )


@dataclass
class NameConflictError(PostierError):
    """A create or rename target collides with an existing sibling."""

    code: str = field(default=ErrorCode.NAME_CONFLICT)
    message: str = field(default="A file or folder with this name already exists")
    details: dict[str, Any] = field(default_factory=dict)
    path: str | None = field(default=None)

    title: ClassVar[str] = "Name conflict"


@dataclass
class NoCollectionSelectedError(PostierError):
    """Save-as or autosave was attempted without a selected collection."""

    code: str = field(default=ErrorCode.NO_COLLECTION_SELECTED)
    message: str = field(default="You should select a collection first.")
    details: dict[str, Any] = field(default_factory=dict)

    title: ClassVar[str] = "No collection"


@dataclass
class NoActiveFileError(PostierError):
    """A manual save was attempted while no request file is attached."""

    code: str = field(default=ErrorCode.NO_ACTIVE_FILE)
    message: str = field(default="You should select a file first.")
    details: dict[str, Any] = field(default_factory=dict)

    title: ClassVar[str] = "No file selected"


@dataclass
class RequestExecutionError(PostierError):
    """The HTTP transport failed before a response was received."""

    code: str = field(default=ErrorCode.REQUEST_EXECUTION_FAILED)
    message: str = field(default="The request could not be completed")
    details: dict[str, Any] = field(default_factory=dict)

    title: ClassVar[str] = "Request failed"


@dataclass
class PartialRenameError(PostierError):
    """A rename created the new path but could not remove the old one."""

    code: str = field(default=ErrorCode.PARTIAL_RENAME)
    message: str = field(default="The item was copied but the original could not be removed")
    details: dict[str, Any] = field(default_factory=dict)
    old_path: str | None = field(default=None)
    new_path: str | None = field(default=None)

    title: ClassVar[str] = "Failed to rename"


@dataclass
class CollectionAlreadyOpenError(PostierError):
    """The picked folder is already open as a collection."""

    code: str = field(default=ErrorCode.COLLECTION_ALREADY_OPEN)
    message: str = field(
        default=(
            "This collection is already open in the workspace. "
            "Please close it first if you want to reload it."
        )
    )
    details: dict[str, Any] = field(default_factory=dict)
    path: str | None = field(default=None)

    title: ClassVar[str] = "Collection Already Open"


@dataclass
class InvalidRequestFileError(PostierError):
    """A request file exists but does not contain a valid request."""

    code: str = field(default=ErrorCode.INVALID_REQUEST_FILE)
    message: str = field(default="The request file could not be parsed")
    details: dict[str, Any] = field(default_factory=dict)
    path: str | None = field(default=None)

    title: ClassVar[str] = "Failed to load file"


__all__ = [
    "ErrorCode",
    "PostierError",
    "StorageUnavailableError",
    "NameConflictError",
    "NoCollectionSelectedError",
    "NoActiveFileError",
    "RequestExecutionError",
    "PartialRenameError",
    "CollectionAlreadyOpenError",
    "InvalidRequestFileError",
]
