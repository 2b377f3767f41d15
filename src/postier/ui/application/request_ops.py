"""Request editor use cases.

- SendRequestUseCase: Execute the edited request and fold in the response
- SaveRequestUseCase: Save to the attached file, or prompt for a name
- SaveRequestAsUseCase: Save into the selected collection under a new name
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from ...errors import PostierError
from .collection_ops import report_failure

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...editor.request_model import HTTPResponse
    from ...services.http_executor import HttpExecutor
    from ..domain.collection_loader import CollectionTreeLoader
    from ..domain.request_controller import RequestDocumentController
    from ..domain.workspace_store import WorkspaceStore
    from ..events import EventBus

LOGGER = logging.getLogger(__name__)


class FileNamePrompt(Protocol):
    """Asks the user for the name of a new request file."""

    def prompt_file_name(self, default: str = "") -> str | None:
        ...


class SendRequestUseCase:
    """Send the current request.

    With autosave enabled and a file attached the response is written to the
    file right away; otherwise it stays in the editor and the document is
    left dirty.
    """

    __slots__ = ("_controller", "_executor", "_store", "_bus")

    def __init__(
        self,
        controller: RequestDocumentController,
        executor: HttpExecutor,
        store: WorkspaceStore,
        event_bus: EventBus,
    ) -> None:
        self._controller = controller
        self._executor = executor
        self._store = store
        self._bus = event_bus

    async def execute(self, *, autosave: bool | None = None) -> HTTPResponse | None:
        request = self._controller.draft.to_http_request()
        if not request.url.strip():
            report_failure(self._bus, "send request", ValueError("The request has no URL"))
            return None
        self._controller.set_response(None)
        try:
            response = await self._executor.execute(request)
        except PostierError as exc:
            report_failure(self._bus, "send request", exc)
            return None
        LOGGER.info("%s %s -> %s", request.method, request.url, response.status)
        try:
            await self._controller.apply_response(
                response,
                autosave=self._store.auto_save if autosave is None else autosave,
            )
        except (PostierError, OSError) as exc:
            report_failure(self._bus, "save request", exc)
        return response


class SaveRequestUseCase:
    """Save the edited request, falling back to save-as when nothing is attached."""

    __slots__ = ("_controller", "_prompt", "_save_as", "_bus")

    def __init__(
        self,
        controller: RequestDocumentController,
        prompt: FileNamePrompt | None,
        save_as: SaveRequestAsUseCase,
        event_bus: EventBus,
    ) -> None:
        self._controller = controller
        self._prompt = prompt
        self._save_as = save_as
        self._bus = event_bus

    async def execute(self) -> str | None:
        if self._controller.path is None and self._prompt is not None:
            filename = self._prompt.prompt_file_name(self._controller.draft.display_name())
            if not filename:
                return None
            return await self._save_as.execute(filename)
        try:
            return await self._controller.save()
        except (PostierError, OSError, ValueError) as exc:
            report_failure(self._bus, "save request", exc)
            return None


class SaveRequestAsUseCase:
    __slots__ = ("_controller", "_store", "_loader", "_bus")

    def __init__(
        self,
        controller: RequestDocumentController,
        store: WorkspaceStore,
        loader: CollectionTreeLoader,
        event_bus: EventBus,
    ) -> None:
        self._controller = controller
        self._store = store
        self._loader = loader
        self._bus = event_bus

    async def execute(self, filename: str) -> str | None:
        try:
            path = await self._controller.save_as(filename, self._store.selected_collection)
        except (PostierError, OSError, ValueError) as exc:
            report_failure(self._bus, "save request", exc)
            return None
        self._store.select_owner_of(path)
        await self._loader.refresh_path(path)
        return path


__all__ = [
    "FileNamePrompt",
    "SendRequestUseCase",
    "SaveRequestUseCase",
    "SaveRequestAsUseCase",
]
