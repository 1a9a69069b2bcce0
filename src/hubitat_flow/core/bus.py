"""
Event Bus implementation for hub event routing.

The Event Bus is a topic-keyed dispatcher for hub events. Device events are
published on a per-device topic (``device.<id>``), lifecycle events on their
event type, so a node only hears about the devices it subscribed to.
"""

import inspect
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Optional, Dict, Any, Callable, List
import logging

logger = logging.getLogger(__name__)

# Event types
ATTRIBUTE_CHANGED = "device.attribute_changed"
SYSTEM_READY = "hub.system_ready"
CONNECTION_OPENED = "hub.connection_opened"
CONNECTION_CLOSED = "hub.connection_closed"
CONNECTION_ERROR = "hub.connection_error"

ALL_TOPICS = "*"


def _utc_now() -> datetime:
    """Get current UTC time (for default factory)."""
    return datetime.now(UTC)


def device_topic(device_id: Any) -> str:
    """Topic key for events about a single device."""
    return f"device.{device_id}"


@dataclass
class Event:
    """
    An event coming from the hub connection.

    Attributes:
        type: Event type (e.g., "device.attribute_changed", "hub.system_ready")
        source: Event source (e.g., "hubitat", "test")
        device_id: Device the event relates to (device events only)
        name: Attribute name (e.g., "switch", "level")
        value: New attribute value
        payload: Any extra fields reported by the hub
        timestamp: When the event occurred
    """

    type: str
    source: str
    device_id: Optional[Any] = None
    name: Optional[str] = None
    value: Any = None
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utc_now)

    @property
    def topic(self) -> str:
        """Topic key this event is published on."""
        if self.device_id is not None:
            return device_topic(self.device_id)
        return self.type

    def as_message(self) -> Dict[str, Any]:
        """Flatten to the plain dict shape downstream flow nodes expect."""
        message = dict(self.payload)
        message.update(
            {
                "deviceId": self.device_id,
                "name": self.name,
                "value": self.value,
            }
        )
        return message


class EventFilter:
    """
    Filter for event subscriptions.

    Allows subscribers to filter events by type and device.
    """

    def __init__(
        self,
        event_type: Optional[str] = None,
        device_id: Optional[Any] = None,
    ):
        """
        Initialize an event filter.

        Args:
            event_type: Filter by event type (None = all types)
            device_id: Filter by device ID (None = all devices)
        """
        self.event_type = event_type
        self.device_id = device_id

    @property
    def topic(self) -> str:
        """Registry key for subscriptions using this filter."""
        if self.device_id is not None:
            return device_topic(self.device_id)
        return self.event_type or ALL_TOPICS

    def matches(self, event: Event) -> bool:
        """
        Check if an event matches this filter.

        Device identifiers compare by string value, so 12 and "12" match.
        """
        if self.event_type and event.type != self.event_type:
            return False

        if self.device_id is not None:
            if event.device_id is None or str(event.device_id) != str(self.device_id):
                return False

        return True

    def __repr__(self) -> str:
        return f"EventFilter(event_type={self.event_type!r}, device_id={self.device_id!r})"


EventHandler = Callable[[Event], Any]


@dataclass(eq=False)
class Subscription:
    """Handle returned by subscribe(); pass it back to unsubscribe()."""

    handler: EventHandler
    event_filter: EventFilter

    @property
    def topic(self) -> str:
        return self.event_filter.topic


class EventBus:
    """
    Event bus for hub events.

    Handlers may be plain callables or coroutine functions; coroutines are
    awaited one at a time. Handlers are wrapped in try/except so one
    bad node cannot stop delivery to the others.
    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._registry: Dict[str, List[Subscription]] = {}

    def subscribe(
        self,
        handler: EventHandler,
        event_filter: Optional[EventFilter] = None,
    ) -> Subscription:
        """
        Subscribe to events.

        Args:
            handler: Callable (or coroutine function) that receives Event objects
            event_filter: Optional filter for events (None = receive all events)

        Returns:
            Subscription handle for unsubscribe()
        """
        if event_filter is None:
            event_filter = EventFilter()

        subscription = Subscription(handler=handler, event_filter=event_filter)
        self._registry.setdefault(subscription.topic, []).append(subscription)
        logger.debug(f"Subscribed {_handler_name(handler)} to {subscription.topic}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """
        Remove a subscription. Unknown subscriptions are ignored.

        Args:
            subscription: Handle returned by subscribe()
        """
        subscriptions = self._registry.get(subscription.topic)
        if not subscriptions or subscription not in subscriptions:
            return

        subscriptions.remove(subscription)
        if not subscriptions:
            del self._registry[subscription.topic]
        logger.debug(f"Unsubscribed {_handler_name(subscription.handler)} from {subscription.topic}")

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        """Number of subscriptions on a topic (or on all topics)."""
        if topic is not None:
            return len(self._registry.get(topic, []))
        return sum(len(subs) for subs in self._registry.values())

    async def publish(self, event: Event) -> None:
        """
        Publish an event to all matching subscribers.

        Args:
            event: The event to publish
        """
        logger.debug(f"Publishing event: {event.type} on {event.topic} from {event.source}")

        for subscription in self._candidates(event):
            if not subscription.event_filter.matches(event):
                continue
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Error in event handler {_handler_name(subscription.handler)} "
                    f"for event {event.type}: {e}",
                    exc_info=True,
                )

    def _candidates(self, event: Event) -> List[Subscription]:
        """Snapshot of subscriptions that could match, in subscription order."""
        topics = [event.topic]
        if event.type != event.topic:
            topics.append(event.type)
        topics.append(ALL_TOPICS)

        candidates: List[Subscription] = []
        for topic in topics:
            candidates.extend(self._registry.get(topic, []))
        return candidates


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", repr(handler))
