"""Tests for the event bus."""

import asyncio

import pytest

from hubitat_flow.core.bus import (
    ATTRIBUTE_CHANGED,
    SYSTEM_READY,
    Event,
    EventBus,
    EventFilter,
    device_topic,
)


@pytest.fixture
def bus():
    return EventBus()


def make_device_event(device_id, name="switch", value="on") -> Event:
    return Event(
        type=ATTRIBUTE_CHANGED,
        source="test",
        device_id=device_id,
        name=name,
        value=value,
    )


class TestSubscriptions:
    """Tests for subscribe/unsubscribe bookkeeping."""

    def test_subscription_registered_under_device_topic(self, bus):
        """Device filters register under device.<id>."""
        sub = bus.subscribe(lambda e: None, EventFilter(event_type=ATTRIBUTE_CHANGED, device_id=12))

        assert sub.topic == "device.12"
        assert bus.subscriber_count("device.12") == 1

    def test_lifecycle_subscription_uses_event_type(self, bus):
        """Filters without a device register under the event type."""
        sub = bus.subscribe(lambda e: None, EventFilter(event_type=SYSTEM_READY))
        assert sub.topic == SYSTEM_READY

    def test_unsubscribe_is_symmetric(self, bus):
        """Unsubscribing removes exactly the given subscription."""
        first = bus.subscribe(lambda e: None, EventFilter(device_id="1"))
        bus.subscribe(lambda e: None, EventFilter(device_id="1"))

        bus.unsubscribe(first)
        assert bus.subscriber_count("device.1") == 1

        # Unsubscribing twice is harmless
        bus.unsubscribe(first)
        assert bus.subscriber_count() == 1


class TestPublish:
    """Tests for event delivery."""

    def test_device_event_reaches_only_its_subscribers(self, bus):
        """A device event is delivered to that device's handlers only."""
        received = []
        bus.subscribe(lambda e: received.append(("a", e.device_id)), EventFilter(device_id="1"))
        bus.subscribe(lambda e: received.append(("b", e.device_id)), EventFilter(device_id="2"))

        asyncio.run(bus.publish(make_device_event("1")))

        assert received == [("a", "1")]

    def test_numeric_and_string_ids_match(self, bus):
        """Device IDs compare by string value."""
        received = []
        bus.subscribe(received.append, EventFilter(device_id=12))

        asyncio.run(bus.publish(make_device_event("12")))

        assert len(received) == 1

    def test_coroutine_handlers_are_awaited(self, bus):
        """Async handlers run to completion during publish."""
        received = []

        async def handler(event):
            await asyncio.sleep(0)
            received.append(event.type)

        bus.subscribe(handler, EventFilter(event_type=SYSTEM_READY))
        asyncio.run(bus.publish(Event(type=SYSTEM_READY, source="test")))

        assert received == [SYSTEM_READY]

    def test_catch_all_subscription(self, bus):
        """A filter-less subscription receives every event."""
        received = []
        bus.subscribe(received.append)

        async def publish_both():
            await bus.publish(make_device_event("5"))
            await bus.publish(Event(type=SYSTEM_READY, source="test"))

        asyncio.run(publish_both())

        assert [e.type for e in received] == [ATTRIBUTE_CHANGED, SYSTEM_READY]

    def test_failing_handler_does_not_stop_others(self, bus):
        """One handler raising does not prevent delivery to the rest."""
        received = []

        def bad_handler(event):
            raise RuntimeError("boom")

        bus.subscribe(bad_handler, EventFilter(device_id="1"))
        bus.subscribe(received.append, EventFilter(device_id="1"))

        asyncio.run(bus.publish(make_device_event("1")))

        assert len(received) == 1

    def test_event_message_shape(self):
        """as_message flattens the event for downstream nodes."""
        event = Event(
            type=ATTRIBUTE_CHANGED,
            source="test",
            device_id="7",
            name="level",
            value=40,
            payload={"unit": "%"},
        )

        assert event.topic == device_topic("7")
        assert event.as_message() == {"unit": "%", "deviceId": "7", "name": "level", "value": 40}
