"""Typed publish/subscribe plumbing shared by the workspace views.

Views never call each other directly. The tree publishes a
:class:`LoadFileRequested` and the request editor, when mounted, reacts to it;
stores announce their changes the same way.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, TypeVar
from weakref import WeakMethod

LOGGER = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for everything published on the :class:`EventBus`."""


@dataclass(slots=True)
class LoadFileRequested(Event):
    """The user picked a request file in the tree."""

    path: str


@dataclass(slots=True)
class ClearActiveRequested(Event):
    """The active request must be dropped (directory click, close, delete)."""


@dataclass(slots=True)
class ActiveFileMoved(Event):
    """The active request file, or a folder containing it, was renamed."""

    old_path: str
    new_path: str


@dataclass(slots=True)
class DocumentLoaded(Event):
    path: str
    name: str = ""


@dataclass(slots=True)
class DocumentSaved(Event):
    path: str


@dataclass(slots=True)
class ActiveDocumentCleared(Event):
    previous_path: str | None = None


@dataclass(slots=True)
class DirtyStateChanged(Event):
    """The editor's unsaved-changes flag flipped.

    Attributes:
        path: The attached file, or ``None`` while unattached.
        dirty: The new value of the flag.
    """

    path: str | None
    dirty: bool


@dataclass(slots=True)
class CollectionsChanged(Event):
    collection_ids: tuple[str, ...]


@dataclass(slots=True)
class SelectionChanged(Event):
    collection_id: str | None


@dataclass(slots=True)
class ExpandedNodesChanged(Event):
    expanded: frozenset[str]


@dataclass(slots=True)
class NoticePosted(Event):
    """A message that should reach the user as a dialog or status line.

    Attributes:
        title: Short heading for the notice.
        message: Body text.
        level: ``"info"``, ``"warning"`` or ``"error"``.
    """

    title: str
    message: str
    level: str = "error"


@dataclass(slots=True)
class CollectionChoiceRequired(Event):
    """Several collections are open and none is selected."""

    collection_ids: tuple[str, ...]


class EventBus:
    """Synchronous, typed event bus.

    Bound methods are held through :class:`weakref.WeakMethod` so a view that
    is garbage collected stops receiving events without unsubscribing. Plain
    functions are held strongly. A handler that raises is logged and the
    remaining handlers still run. Not thread-safe; publish from the loop
    thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: defaultdict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        LOGGER.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        refs = self._handlers.get(event_type)
        if not refs:
            return
        for position, handler_ref in enumerate(refs):
            if handler_ref.matches(handler):
                del refs[position]
                LOGGER.debug("Unsubscribed %s from %s", _handler_name(handler), event_type.__name__)
                return

    def publish(self, event: Event) -> int:
        """Deliver ``event`` to its subscribers and return how many were called."""

        event_type = type(event)
        refs = self._handlers.get(event_type)
        if not refs:
            LOGGER.debug("No handlers for event type %s", event_type.__name__)
            return 0

        delivered = 0
        for handler_ref in list(refs):
            handler = handler_ref.resolve()
            if handler is None:
                refs.remove(handler_ref)
                continue
            delivered += 1
            try:
                handler(event)
            except Exception:
                LOGGER.exception(
                    "Handler %s raised while handling %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        return delivered

    def handler_count(self, event_type: type[Event] | None = None) -> int:
        if event_type is not None:
            return sum(1 for item in self._handlers.get(event_type, ()) if item.resolve() is not None)
        return sum(self.handler_count(kind) for kind in list(self._handlers))

    def clear(self) -> None:
        self._handlers.clear()


class EventCoordinator:
    """Named entry points for the cross-view notifications.

    There is no queue and no replay: a notification sent while nobody is
    subscribed is dropped.
    """

    __slots__ = ("_bus",)

    def __init__(self, bus: EventBus | None = None) -> None:
        self._bus = bus or EventBus()

    @property
    def bus(self) -> EventBus:
        return self._bus

    def publish(self, event: Event) -> int:
        return self._bus.publish(event)

    def notify_load_file(self, path: str) -> bool:
        delivered = self._bus.publish(LoadFileRequested(path=path))
        if not delivered:
            LOGGER.debug("Dropped load request for %s: no editor mounted", path)
        return bool(delivered)

    def notify_clear_active(self) -> bool:
        delivered = self._bus.publish(ClearActiveRequested())
        if not delivered:
            LOGGER.debug("Dropped clear request: no editor mounted")
        return bool(delivered)

    def notify_active_moved(self, old_path: str, new_path: str) -> bool:
        return bool(self._bus.publish(ActiveFileMoved(old_path=old_path, new_path=new_path)))

    def subscribe_load_file(self, handler: Handler[LoadFileRequested]) -> None:
        self._bus.subscribe(LoadFileRequested, handler)

    def unsubscribe_load_file(self, handler: Handler[LoadFileRequested]) -> None:
        self._bus.unsubscribe(LoadFileRequested, handler)

    def subscribe_clear_active(self, handler: Handler[ClearActiveRequested]) -> None:
        self._bus.subscribe(ClearActiveRequested, handler)

    def unsubscribe_clear_active(self, handler: Handler[ClearActiveRequested]) -> None:
        self._bus.unsubscribe(ClearActiveRequested, handler)

    def subscribe_active_moved(self, handler: Handler[ActiveFileMoved]) -> None:
        self._bus.subscribe(ActiveFileMoved, handler)

    def unsubscribe_active_moved(self, handler: Handler[ActiveFileMoved]) -> None:
        self._bus.unsubscribe(ActiveFileMoved, handler)

    def post_notice(self, title: str, message: str, *, level: str = "error") -> None:
        self._bus.publish(NoticePosted(title=title, message=message, level=level))


class _HandlerRef:
    __slots__ = ("_target", "_weak")

    def __init__(self, target: object, weak: bool) -> None:
        self._target = target
        self._weak = weak

    @classmethod
    def create(cls, handler: Handler) -> "_HandlerRef":
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), weak=True)  # type: ignore[arg-type]
            except TypeError:
                pass
        return cls(handler, weak=False)

    def resolve(self) -> Handler | None:
        if self._weak:
            return self._target()  # type: ignore[operator]
        return self._target  # type: ignore[return-value]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    owner = getattr(handler, "__self__", None)
    func = getattr(handler, "__func__", None)
    if owner is not None and func is not None:
        return f"{type(owner).__name__}.{func.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "EventCoordinator",
    "Handler",
    "LoadFileRequested",
    "ClearActiveRequested",
    "ActiveFileMoved",
    "DocumentLoaded",
    "DocumentSaved",
    "ActiveDocumentCleared",
    "DirtyStateChanged",
    "CollectionsChanged",
    "SelectionChanged",
    "ExpandedNodesChanged",
    "NoticePosted",
    "CollectionChoiceRequired",
]
