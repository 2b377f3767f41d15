"""Unit tests for :mod:`postier.ui.events`."""

from __future__ import annotations

import gc
from dataclasses import dataclass

from postier.ui.events import (
    ActiveFileMoved,
    ClearActiveRequested,
    Event,
    EventBus,
    EventCoordinator,
    LoadFileRequested,
    NoticePosted,
)


@dataclass(slots=True)
class SampleEvent(Event):
    """A sample event for testing."""

    message: str
    value: int = 0


@dataclass(slots=True)
class AnotherEvent(Event):
    data: str


class TestEventBusSubscription:
    """Tests for subscribe/unsubscribe bookkeeping."""

    def test_subscribe_counts_handlers_per_type(self) -> None:
        bus = EventBus()

        bus.subscribe(SampleEvent, lambda e: None)
        bus.subscribe(SampleEvent, lambda e: None)
        bus.subscribe(AnotherEvent, lambda e: None)

        assert bus.handler_count(SampleEvent) == 2
        assert bus.handler_count(AnotherEvent) == 1
        assert bus.handler_count() == 3

    def test_unsubscribe_removes_one_registration(self) -> None:
        """unsubscribe removes only the first matching registration."""
        bus = EventBus()

        def handler(event: SampleEvent) -> None:
            pass

        bus.subscribe(SampleEvent, handler)
        bus.subscribe(SampleEvent, handler)
        bus.unsubscribe(SampleEvent, handler)

        assert bus.handler_count(SampleEvent) == 1

    def test_unsubscribe_unknown_handler_is_safe(self) -> None:
        bus = EventBus()

        bus.unsubscribe(SampleEvent, lambda e: None)

        assert bus.handler_count() == 0

    def test_clear_drops_everything(self) -> None:
        bus = EventBus()
        bus.subscribe(SampleEvent, lambda e: None)
        bus.subscribe(AnotherEvent, lambda e: None)

        bus.clear()

        assert bus.handler_count() == 0


class TestEventBusPublish:
    """Tests for delivery semantics."""

    def test_publish_delivers_in_subscription_order(self) -> None:
        bus = EventBus()
        order: list[int] = []
        bus.subscribe(SampleEvent, lambda e: order.append(1))
        bus.subscribe(SampleEvent, lambda e: order.append(2))

        delivered = bus.publish(SampleEvent(message="hi"))

        assert order == [1, 2]
        assert delivered == 2

    def test_publish_only_reaches_matching_type(self) -> None:
        bus = EventBus()
        received: list[str] = []
        bus.subscribe(AnotherEvent, lambda e: received.append(e.data))

        assert bus.publish(SampleEvent(message="x")) == 0
        assert received == []

    def test_publish_continues_after_handler_exception(self) -> None:
        """A raising handler is logged and the others still run."""
        bus = EventBus()
        received: list[int] = []

        def boom(event: SampleEvent) -> None:
            raise ValueError("boom")

        bus.subscribe(SampleEvent, lambda e: received.append(1))
        bus.subscribe(SampleEvent, boom)
        bus.subscribe(SampleEvent, lambda e: received.append(3))

        bus.publish(SampleEvent(message="test"))

        assert received == [1, 3]


class TestEventBusWeakReferences:
    """Bound methods are held weakly."""

    def test_collected_subscriber_stops_receiving(self) -> None:
        bus = EventBus()
        received: list[SampleEvent] = []

        class Subscriber:
            def handle(self, event: SampleEvent) -> None:
                received.append(event)

        subscriber = Subscriber()
        bus.subscribe(SampleEvent, subscriber.handle)
        bus.publish(SampleEvent(message="before"))

        del subscriber
        gc.collect()

        assert bus.publish(SampleEvent(message="after")) == 0
        assert len(received) == 1
        assert bus.handler_count(SampleEvent) == 0

    def test_bound_method_can_be_unsubscribed(self) -> None:
        bus = EventBus()

        class Subscriber:
            def handle(self, event: SampleEvent) -> None:
                pass

        subscriber = Subscriber()
        bus.subscribe(SampleEvent, subscriber.handle)
        bus.unsubscribe(SampleEvent, subscriber.handle)

        assert bus.handler_count(SampleEvent) == 0


class TestEventCoordinator:
    """Tests for the named cross-view notifications."""

    def test_notify_load_file_without_subscriber_is_dropped(self) -> None:
        coordinator = EventCoordinator()

        assert coordinator.notify_load_file("/ws/api/a.postier") is False
        assert coordinator.notify_clear_active() is False

    def test_notify_load_file_reaches_subscriber(self) -> None:
        coordinator = EventCoordinator()
        received: list[LoadFileRequested] = []
        coordinator.subscribe_load_file(received.append)

        assert coordinator.notify_load_file("/ws/api/a.postier") is True
        assert received == [LoadFileRequested(path="/ws/api/a.postier")]

    def test_unsubscribe_stops_delivery_without_replay(self) -> None:
        coordinator = EventCoordinator()
        received: list[ClearActiveRequested] = []

        def handler(event: ClearActiveRequested) -> None:
            received.append(event)

        coordinator.subscribe_clear_active(handler)
        coordinator.unsubscribe_clear_active(handler)
        coordinator.notify_clear_active()
        coordinator.subscribe_clear_active(handler)

        assert received == []

    def test_notify_active_moved_and_post_notice(self) -> None:
        bus = EventBus()
        coordinator = EventCoordinator(bus)
        moves: list[ActiveFileMoved] = []
        notices: list[NoticePosted] = []
        coordinator.subscribe_active_moved(moves.append)
        bus.subscribe(NoticePosted, notices.append)

        coordinator.notify_active_moved("/a", "/b")
        coordinator.post_notice("Title", "Body", level="warning")

        assert coordinator.bus is bus
        assert moves == [ActiveFileMoved(old_path="/a", new_path="/b")]
        assert notices == [NoticePosted(title="Title", message="Body", level="warning")]
