"""Tests for the send and save use cases."""

from __future__ import annotations

import pytest

from helpers import InMemoryStorage, Recorder, StubExecutor, make_collection, transport_failure
from postier.editor.request_model import BodyType, HTTPResponse, KeyValue, RequestDocument, parse_document
from postier.ui.application.request_ops import SaveRequestAsUseCase, SaveRequestUseCase, SendRequestUseCase
from postier.ui.domain.collection_loader import CollectionTreeLoader
from postier.ui.domain.request_controller import RequestDocumentController
from postier.ui.domain.workspace_store import WorkspaceStore
from postier.ui.events import EventBus, NoticePosted


class StubPrompt:
    def __init__(self, answer: str | None) -> None:
        self.answer = answer
        self.defaults: list[str] = []

    def prompt_file_name(self, default: str = "") -> str | None:
        self.defaults.append(default)
        return self.answer


@pytest.fixture
def notices(bus: EventBus) -> Recorder:
    recorder = Recorder()
    bus.subscribe(NoticePosted, recorder.record)
    return recorder


@pytest.fixture
def attached_path(storage: InMemoryStorage) -> str:
    path = "/ws/api/create.postier"
    storage.add_request(
        path,
        RequestDocument(
            name="POST@x.test/items",
            method="POST",
            url="https://x.test/items",
            headers=[KeyValue("Accept", "json")],
            query=[KeyValue("dry", "1")],
            body='{"a": 1}',
            body_type=BodyType.JSON,
        ),
    )
    return path


def _save_as(
    controller: RequestDocumentController, store: WorkspaceStore, loader: CollectionTreeLoader, bus: EventBus
) -> SaveRequestAsUseCase:
    return SaveRequestAsUseCase(controller, store, loader, bus)


class TestSendRequest:
    @pytest.mark.asyncio
    async def test_send_with_autosave_writes_response(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        storage: InMemoryStorage,
        bus: EventBus,
        attached_path: str,
    ) -> None:
        store.add_collection(make_collection(storage, "/ws/api", "api"))
        store.select_collection("api")
        executor = StubExecutor()
        await controller.load(attached_path)

        response = await SendRequestUseCase(controller, executor, store, bus).execute()

        sent = executor.requests[0]
        assert sent.method == "POST"
        assert sent.headers == {"Accept": "json", "Content-Type": "application/json"}
        assert sent.query == {"dry": "1"}
        assert sent.body == '{"a": 1}'
        assert response is not None
        assert parse_document(storage.files[attached_path]).response == response
        assert controller.dirty is False

    @pytest.mark.asyncio
    async def test_send_without_autosave_leaves_document_dirty(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        storage: InMemoryStorage,
        bus: EventBus,
        attached_path: str,
    ) -> None:
        await controller.load(attached_path)
        before = storage.files[attached_path]

        await SendRequestUseCase(controller, StubExecutor(), store, bus).execute(autosave=False)

        assert storage.files[attached_path] == before
        assert controller.draft.response is not None
        assert controller.dirty is True

    @pytest.mark.asyncio
    async def test_autosave_without_selected_collection_reports_and_writes_nothing(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        storage: InMemoryStorage,
        bus: EventBus,
        notices: Recorder,
        attached_path: str,
    ) -> None:
        await controller.load(attached_path)
        before = storage.files[attached_path]

        response = await SendRequestUseCase(controller, StubExecutor(), store, bus).execute(autosave=True)

        assert response is not None
        assert storage.files[attached_path] == before
        assert controller.draft.response == response
        assert controller.dirty is True
        assert [event.title for event in notices.events] == ["No collection"]

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_notice(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        bus: EventBus,
        notices: Recorder,
        attached_path: str,
    ) -> None:
        await controller.load(attached_path)
        executor = StubExecutor(error=transport_failure("connection refused"))

        assert await SendRequestUseCase(controller, executor, store, bus).execute() is None

        assert notices.events == [NoticePosted(title="Request failed", message="connection refused")]
        assert controller.draft.response is None

    @pytest.mark.asyncio
    async def test_empty_url_is_not_sent(
        self, controller: RequestDocumentController, store: WorkspaceStore, bus: EventBus, notices: Recorder
    ) -> None:
        executor = StubExecutor()

        assert await SendRequestUseCase(controller, executor, store, bus).execute() is None

        assert executor.requests == []
        assert notices.events[0].title == "Failed to send request"

    @pytest.mark.asyncio
    async def test_unattached_send_keeps_response_in_memory(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        storage: InMemoryStorage,
        bus: EventBus,
    ) -> None:
        controller.set_url("https://x.test/ping")
        response = HTTPResponse(status_code=204, status="204 No Content")

        await SendRequestUseCase(controller, StubExecutor(response), store, bus).execute()

        assert controller.draft.response == response
        assert storage.mutations() == []
        assert controller.dirty is False


class TestSave:
    @pytest.mark.asyncio
    async def test_save_attached_file(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        bus: EventBus,
        attached_path: str,
    ) -> None:
        await controller.load(attached_path)
        controller.set_url("https://x.test/v2/items")
        prompt = StubPrompt("ignored")

        saved = await SaveRequestUseCase(controller, prompt, _save_as(controller, store, loader, bus), bus).execute()

        assert saved == attached_path
        assert prompt.defaults == []
        assert controller.dirty is False

    @pytest.mark.asyncio
    async def test_unattached_save_prompts_then_saves_as(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        storage: InMemoryStorage,
        bus: EventBus,
    ) -> None:
        collection = await loader.open_collection("/ws/api")
        store.select_collection(collection.id)
        controller.set_url("https://x.test/health")
        prompt = StubPrompt("health")

        saved = await SaveRequestUseCase(controller, prompt, _save_as(controller, store, loader, bus), bus).execute()

        assert saved == "/ws/api/health.postier"
        assert prompt.defaults == ["GET@x.test/health"]
        assert store.find_node(saved) is not None
        assert saved in storage.files

    @pytest.mark.asyncio
    async def test_cancelled_prompt_saves_nothing(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        storage: InMemoryStorage,
        bus: EventBus,
    ) -> None:
        use_case = SaveRequestUseCase(controller, StubPrompt(None), _save_as(controller, store, loader, bus), bus)

        assert await use_case.execute() is None
        assert storage.mutations() == []

    @pytest.mark.asyncio
    async def test_unattached_save_without_prompt_reports_no_file(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        bus: EventBus,
        notices: Recorder,
    ) -> None:
        use_case = SaveRequestUseCase(controller, None, _save_as(controller, store, loader, bus), bus)

        assert await use_case.execute() is None
        assert notices.events[0].message == "You should select a file first."

    @pytest.mark.asyncio
    async def test_save_as_without_selection_reports_notice(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        bus: EventBus,
        notices: Recorder,
    ) -> None:
        assert await _save_as(controller, store, loader, bus).execute("new") is None
        assert notices.events[0].message == "You should select a collection first."

    @pytest.mark.asyncio
    async def test_save_as_into_explicit_collection(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        storage: InMemoryStorage,
        bus: EventBus,
    ) -> None:
        storage.add_dir("/ws/web")
        store.add_collection(make_collection(storage, "/ws/web", "web"))
        store.select_collection("web")

        saved = await _save_as(controller, store, loader, bus).execute("home.postier")

        assert saved == "/ws/web/home.postier"
        assert controller.path == saved
