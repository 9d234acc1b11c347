"""Tests for the event bus."""

from hemisphere.events import EventBus
from hemisphere.models.events import LayerDegraded
from hemisphere.models.generation import LayerTag


def _event():
    return LayerDegraded(LayerTag.RADAR, fetched=3, requested=16, reason="tile fetch failures")


class TestEventBus:
    def test_delivers_in_subscription_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(lambda e: calls.append(("first", e)))
        bus.subscribe(lambda e: calls.append(("second", e)))

        event = _event()
        bus.publish(event)
        assert calls == [("first", event), ("second", event)]

    def test_failing_subscriber_does_not_stop_delivery(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.publish(_event())
        assert len(received) == 1

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)
        bus.unsubscribe(received.append)
        bus.publish(_event())
        assert received == []

    def test_unsubscribe_unknown_is_noop(self):
        EventBus().unsubscribe(print)

    def test_publish_without_subscribers(self):
        EventBus().publish(_event())
