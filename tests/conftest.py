"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from helpers import InMemoryStorage
from postier.services.workspace_state import WorkspaceStateStore
from postier.ui.domain.collection_loader import CollectionTreeLoader
from postier.ui.domain.request_controller import RequestDocumentController
from postier.ui.domain.tree_mutations import TreeMutationService
from postier.ui.domain.workspace_store import WorkspaceStore
from postier.ui.events import EventBus, EventCoordinator


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POSTIER_LOG_DIR", str(tmp_path / "logs"))
    for name in ("POSTIER_REQUEST_TIMEOUT", "POSTIER_DEBUG_LOGGING", "POSTIER_VERIFY_TLS", "POSTIER_FOLLOW_REDIRECTS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def storage() -> InMemoryStorage:
    backend = InMemoryStorage()
    backend.add_dir("/ws/api")
    return backend


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def coordinator(bus: EventBus) -> EventCoordinator:
    return EventCoordinator(bus)


@pytest.fixture
def state_store(tmp_path: Path) -> WorkspaceStateStore:
    return WorkspaceStateStore(tmp_path / "workspace.json")


@pytest.fixture
def store(bus: EventBus, state_store: WorkspaceStateStore) -> WorkspaceStore:
    return WorkspaceStore(bus, state_store)


@pytest.fixture
def loader(storage: InMemoryStorage, store: WorkspaceStore) -> CollectionTreeLoader:
    return CollectionTreeLoader(storage, store)


@pytest.fixture
def mutations(
    storage: InMemoryStorage,
    store: WorkspaceStore,
    loader: CollectionTreeLoader,
    coordinator: EventCoordinator,
) -> TreeMutationService:
    return TreeMutationService(storage, store, loader, coordinator=coordinator)


@pytest.fixture
def controller(
    storage: InMemoryStorage,
    bus: EventBus,
    store: WorkspaceStore,
    coordinator: EventCoordinator,
) -> Iterator[RequestDocumentController]:
    instance = RequestDocumentController(storage, bus, store=store)
    instance.mount(coordinator)
    yield instance
    instance.unmount()
