"""Request document controller.

Owns the fields of the request being edited, loads and saves its ``.postier``
file and keeps the dirty flag in step with what is on disk.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Coroutine, Iterable

from ...editor.request_model import (
    BodyType,
    HTTPResponse,
    KeyValue,
    RequestDocument,
    RequestDraft,
    ensure_extension,
    parse_document,
    serialize_document,
)
from ...editor.tree_model import Collection, is_within, join_path
from ...errors import (
    InvalidRequestFileError,
    NoActiveFileError,
    NoCollectionSelectedError,
    PostierError,
    StorageUnavailableError,
)
from ...services.storage import StorageBackend
from ..events import (
    ActiveDocumentCleared,
    ActiveFileMoved,
    ClearActiveRequested,
    DirtyStateChanged,
    DocumentLoaded,
    DocumentSaved,
    EventBus,
    EventCoordinator,
    LoadFileRequested,
    NoticePosted,
)
from . import dirty_state
from .workspace_store import WorkspaceStore

LOGGER = logging.getLogger(__name__)

_UNSET: Any = object()


class LoadState(enum.Enum):
    UNATTACHED = "unattached"
    ATTACHED = "attached"


class RequestDocumentController:
    """State machine for the request editor.

    While ``unattached`` the fields hold defaults and the document is never
    dirty. While ``attached`` every edit recomputes the dirty flag against
    the last loaded or saved snapshot of the file.

    Events Emitted:
        - DocumentLoaded: After a file was read into the editor
        - DocumentSaved: After the editor contents were written
        - ActiveDocumentCleared: When the editor returns to ``unattached``
        - DirtyStateChanged: Whenever the dirty flag flips
    """

    def __init__(
        self,
        storage: StorageBackend,
        event_bus: EventBus,
        *,
        store: WorkspaceStore | None = None,
    ) -> None:
        self._storage = storage
        self._bus = event_bus
        self._store = store
        self._draft = RequestDraft()
        self._path: str | None = None
        self._snapshot: RequestDocument | None = None
        self._dirty = False
        self._generation = 0
        self._coordinator: EventCoordinator | None = None
        self._load_task: asyncio.Task[Any] | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> LoadState:
        return LoadState.ATTACHED if self._path is not None else LoadState.UNATTACHED

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def draft(self) -> RequestDraft:
        """A copy of the current fields; edit through the setters."""

        return self._draft.copy()

    @property
    def snapshot(self) -> RequestDocument | None:
        return self._snapshot

    @property
    def mounted(self) -> bool:
        return self._coordinator is not None

    def changed_fields(self) -> list[str]:
        return dirty_state.changed_fields(self._draft, self._snapshot)

    # ------------------------------------------------------------------
    # Field setters
    # ------------------------------------------------------------------

    def set_method(self, method: str) -> None:
        self._draft.method = method.strip().upper()
        self._recompute_dirty()

    def set_url(self, url: str) -> None:
        self._draft.url = url
        self._recompute_dirty()

    def set_body(self, body: str) -> None:
        self._draft.body = body
        self._recompute_dirty()

    def set_body_type(self, body_type: BodyType | str) -> None:
        self._draft.body_type = BodyType.coerce(body_type)
        self._recompute_dirty()

    def set_response(self, response: HTTPResponse | None) -> None:
        self._draft.response = response
        self._recompute_dirty()

    def set_headers(self, pairs: Iterable[KeyValue]) -> None:
        self._draft.headers = list(pairs)
        self._recompute_dirty()

    def add_header(self, key: str = "", value: str = "") -> int:
        self._draft.headers.append(KeyValue(key, value))
        self._recompute_dirty()
        return len(self._draft.headers) - 1

    def update_header(self, index: int, *, key: str | None = None, value: str | None = None) -> None:
        self._draft.headers[index] = _updated(self._draft.headers[index], key, value)
        self._recompute_dirty()

    def remove_header(self, index: int) -> None:
        del self._draft.headers[index]
        self._recompute_dirty()

    def set_query(self, pairs: Iterable[KeyValue]) -> None:
        self._draft.query = list(pairs)
        self._recompute_dirty()

    def add_query_param(self, key: str = "", value: str = "") -> int:
        self._draft.query.append(KeyValue(key, value))
        self._recompute_dirty()
        return len(self._draft.query) - 1

    def update_query_param(self, index: int, *, key: str | None = None, value: str | None = None) -> None:
        self._draft.query[index] = _updated(self._draft.query[index], key, value)
        self._recompute_dirty()

    def remove_query_param(self, index: int) -> None:
        del self._draft.query[index]
        self._recompute_dirty()

    # ------------------------------------------------------------------
    # Load / clear
    # ------------------------------------------------------------------

    async def load(self, path: str) -> bool:
        """Attach to ``path`` and populate every field from it.

        Returns ``False`` when a newer load, a clear or an unmount happened
        while the file was being read; the result is then discarded.

        Raises:
            StorageUnavailableError: If the file cannot be read.
            InvalidRequestFileError: If the file is not a valid request.
        """

        pending = self._load_task
        if pending is not None and pending is not asyncio.current_task() and not pending.done():
            pending.cancel()
        self._generation += 1
        generation = self._generation
        text = await self._storage.read_file(path)
        if generation != self._generation:
            LOGGER.debug("Discarding stale load of %s", path)
            return False
        try:
            document = parse_document(text)
        except (ValueError, TypeError) as exc:
            raise InvalidRequestFileError(
                message=f"{path} is not a valid request file: {exc}",
                path=path,
            ) from exc

        self._draft = RequestDraft.from_document(document)
        self._attach(path, document)
        LOGGER.debug("Loaded request %s (%s)", path, document.name)
        self._bus.publish(DocumentLoaded(path=path, name=document.name))
        return True

    def clear(self) -> None:
        """Return to ``unattached`` with default fields."""

        self._generation += 1
        previous = self._path
        self._draft = RequestDraft()
        self._path = None
        self._snapshot = None
        if self._store is not None:
            self._store.set_current_file(None)
        self._set_dirty(False)
        self._bus.publish(ActiveDocumentCleared(previous_path=previous))

    def relocate(self, old_path: str, new_path: str) -> bool:
        """Follow a rename of the attached file or one of its folders."""

        if self._path is None or not is_within(self._path, old_path):
            return False
        self._path = new_path + self._path[len(old_path):]
        LOGGER.debug("Active request moved to %s", self._path)
        return True

    async def refresh_dirty(self) -> bool:
        """Re-read the attached file and recompute the dirty flag against it.

        Picks up edits made to the file outside the application.
        """

        if self._path is None:
            return False
        path = self._path
        generation = self._generation
        text = await self._storage.read_file(path)
        if generation != self._generation or path != self._path:
            return self._dirty
        try:
            self._snapshot = parse_document(text)
        except (ValueError, TypeError) as exc:
            raise InvalidRequestFileError(message=f"{path} is not a valid request file: {exc}", path=path) from exc
        self._recompute_dirty()
        return self._dirty

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(self, path: str | None = None, *, response: HTTPResponse | None = _UNSET) -> str:
        """Write the current fields to ``path`` (default: the attached file).

        Raises:
            NoActiveFileError: If no path was given and nothing is attached.
            StorageUnavailableError: If the write fails.
        """

        target = path if path is not None else self._path
        if target is None:
            raise NoActiveFileError()
        target = ensure_extension(target)
        if response is not _UNSET:
            self._draft.response = response

        same_file = target == self._path and self._snapshot is not None
        document = self._draft.to_document(
            created_at=self._snapshot.created_at if same_file else None,
            description=self._snapshot.description if same_file else "",
        )
        content = serialize_document(document)
        try:
            if same_file:
                await self._storage.update_file(target, content)
            else:
                await self._storage.create_file(target, content)
        except PostierError:
            self._recompute_dirty()
            raise

        self._draft = RequestDraft.from_document(document)
        self._attach(target, document)
        LOGGER.debug("Saved request %s", target)
        self._bus.publish(DocumentSaved(path=target))
        return target

    async def save_as(self, filename: str, collection: Collection | None = None) -> str:
        """Save into the root of ``collection`` (default: the selected one).

        Raises:
            NoCollectionSelectedError: If no collection is available.
            ValueError: If ``filename`` is blank.
        """

        if collection is None and self._store is not None:
            collection = self._store.selected_collection
        if collection is None:
            raise NoCollectionSelectedError()
        name = filename.strip()
        if not name:
            raise ValueError("File name must not be empty")
        return await self.save(join_path(collection.path, ensure_extension(name)))

    async def apply_response(self, response: HTTPResponse, *, autosave: bool | None = None) -> bool:
        """Fold ``response`` into the fields and persist it when autosaving.

        Returns ``True`` when the document was written.

        Raises:
            NoCollectionSelectedError: If autosaving while no collection is
                selected. The response is kept in memory and nothing is written.
        """

        if autosave is None:
            autosave = self._store.auto_save if self._store is not None else False
        if not autosave or self._path is None:
            self.set_response(response)
            return False
        if self._store is not None and self._store.selected_collection is None:
            self.set_response(response)
            raise NoCollectionSelectedError()
        await self.save(response=response)
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self, coordinator: EventCoordinator) -> None:
        if self._coordinator is coordinator:
            return
        if self._coordinator is not None:
            self.unmount()
        self._coordinator = coordinator
        coordinator.subscribe_load_file(self._on_load_requested)
        coordinator.subscribe_clear_active(self._on_clear_requested)
        coordinator.subscribe_active_moved(self._on_active_moved)

    def unmount(self) -> None:
        coordinator = self._coordinator
        if coordinator is None:
            return
        self._coordinator = None
        coordinator.unsubscribe_load_file(self._on_load_requested)
        coordinator.unsubscribe_clear_active(self._on_clear_requested)
        coordinator.unsubscribe_active_moved(self._on_active_moved)
        self._generation += 1
        task = self._load_task
        self._load_task = None
        if task is not None and not task.done():
            task.cancel()

    async def wait_for_pending_load(self) -> None:
        task = self._load_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _on_load_requested(self, event: LoadFileRequested) -> None:
        previous = self._load_task
        if previous is not None and not previous.done():
            previous.cancel()
        self._load_task = _schedule(self._load_and_report(event.path))

    def _on_clear_requested(self, event: ClearActiveRequested) -> None:
        previous = self._load_task
        if previous is not None and not previous.done():
            previous.cancel()
        self.clear()

    def _on_active_moved(self, event: ActiveFileMoved) -> None:
        self.relocate(event.old_path, event.new_path)

    async def _load_and_report(self, path: str) -> None:
        try:
            await self.load(path)
        except PostierError as exc:
            LOGGER.warning("Failed to load request %s: %s", path, exc)
            if isinstance(exc, StorageUnavailableError) and self._path != path:
                self._forget_current_file(path)
            self._bus.publish(NoticePosted(title=exc.title, message=exc.message))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _forget_current_file(self, path: str) -> None:
        if self._store is not None and self._store.current_file == path:
            LOGGER.info("Forgetting unreadable active file %s", path)
            self._store.set_current_file(None)

    def _attach(self, path: str, document: RequestDocument) -> None:
        self._path = path
        self._snapshot = document
        if self._store is not None:
            self._store.set_current_file(path)
        self._recompute_dirty()

    def _recompute_dirty(self) -> None:
        if self._path is None:
            self._set_dirty(False)
            return
        self._set_dirty(dirty_state.is_dirty(self._draft, self._snapshot))

    def _set_dirty(self, dirty: bool) -> None:
        if dirty == self._dirty:
            return
        self._dirty = dirty
        self._bus.publish(DirtyStateChanged(path=self._path, dirty=dirty))


def _updated(pair: KeyValue, key: str | None, value: str | None) -> KeyValue:
    return KeyValue(pair.key if key is None else key, pair.value if value is None else value)


def _schedule(coro: Coroutine[Any, Any, None]) -> asyncio.Task[Any] | None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(coro)
        return None
    return loop.create_task(coro)


__all__ = ["RequestDocumentController", "LoadState"]
