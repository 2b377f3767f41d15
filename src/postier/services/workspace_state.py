"""Persistence for the workspace: open collections, expansion and selection."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from ..editor.tree_model import CollectionRef
from .settings import SETTINGS_DIR

__all__ = ["WorkspaceSnapshot", "WorkspaceStateStore"]

LOGGER = logging.getLogger(__name__)
_STATE_FILENAME = "workspace.json"
_STATE_VERSION = 1


def _default_state_path() -> Path:
    return SETTINGS_DIR / _STATE_FILENAME


@dataclass(slots=True)
class WorkspaceSnapshot:
    """Everything about the workspace that survives a restart.

    Collections are stored as references only; trees are rebuilt on startup.
    """

    collections: list[CollectionRef] = field(default_factory=list)
    expanded_nodes: list[str] = field(default_factory=list)
    selected_collection: str | None = None
    current_file: str | None = None
    auto_save: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": _STATE_VERSION,
            "collections": [ref.to_dict() for ref in self.collections],
            "expanded_nodes": list(self.expanded_nodes),
            "selected_collection": self.selected_collection,
            "current_file": self.current_file,
            "auto_save": self.auto_save,
        }


class WorkspaceStateStore:
    """Persistence adapter for :class:`WorkspaceSnapshot`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _default_state_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> WorkspaceSnapshot:
        payload = self._read_payload()
        if payload and payload.get("version") not in (None, _STATE_VERSION):
            LOGGER.info("Workspace state %s has version %s; reading best effort", self._path, payload.get("version"))
        return WorkspaceSnapshot(
            collections=_coerce_refs(payload.get("collections")),
            expanded_nodes=_coerce_strings(payload.get("expanded_nodes")),
            selected_collection=_coerce_optional_str(payload.get("selected_collection")),
            current_file=_coerce_optional_str(payload.get("current_file")),
            auto_save=bool(payload.get("auto_save", True)),
        )

    def save(self, snapshot: WorkspaceSnapshot) -> Path:
        body = json.dumps(snapshot.to_dict(), indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        return self._path

    def _read_payload(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if isinstance(data, Mapping):
                return dict(data)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Workspace state %s is not valid JSON: %s", self._path, exc)
        return {}


def _coerce_refs(value: Any) -> list[CollectionRef]:
    if not isinstance(value, list):
        return []
    refs: list[CollectionRef] = []
    for item in value:
        ref = CollectionRef.from_dict(item) if isinstance(item, Mapping) else None
        if ref is None:
            LOGGER.debug("Dropping malformed collection reference: %r", item)
            continue
        refs.append(ref)
    return refs


def _coerce_strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _coerce_optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
