"""
Hub connection interface.

The hub connection is shared by every node attached to it. It owns:
- the device cache (single writer: the connection, many readers: nodes)
- the event bus carrying attribute changes and lifecycle events
- the command lock that keeps one command in flight at a time
- the pacing delay applied before the lock is released

Nodes treat the cache as read-only and never bypass the lock. A concrete
implementation talking to the Maker API lives in maker_api.py; a mock for
tests lives here.
"""

import asyncio
import copy
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from hubitat_flow.core.bus import ATTRIBUTE_CHANGED, Event, EventBus
from hubitat_flow.core.devices import find_raw_device

logger = logging.getLogger(__name__)


@dataclass
class HubResponse:
    """Raw response to a device command."""

    status: int
    url: str
    text: str = ""

    def json(self) -> Any:
        """Decode the body as JSON (empty body decodes to None)."""
        if not self.text:
            return None
        return json.loads(self.text)


class HubConnection(ABC):
    """
    Abstract interface for a hub connection.

    Subclasses provide the device cache refresh and command execution;
    locking and the event bus are shared here.
    """

    def __init__(
        self,
        name: str = "",
        host: str = "",
        hub_id: str = "",
        command_delay: float = 0.0,
        events: Optional[EventBus] = None,
    ) -> None:
        self.name = name
        self.host = host
        self.id = hub_id
        self.command_delay = command_delay
        self.events = events or EventBus()
        self.devices: Dict[Any, Dict[str, Any]] = {}
        self.devices_initialized = False
        self._command_lock = asyncio.Lock()

    @property
    def safe_id(self) -> str:
        """Hub identity usable in storage keys (name, else host, else id)."""
        hub_id = (self.name or "").strip() or self.host or self.id
        return re.sub(r"[^a-zA-Z0-9]", "_", str(hub_id))

    @abstractmethod
    async def refresh_device_cache(self, force: bool = False) -> None:
        """
        Refresh the device cache.

        Args:
            force: Refetch even if the cache is already initialized

        Raises:
            TransportError: If the hub cannot be reached
        """
        pass

    @abstractmethod
    async def execute_command(
        self,
        device_id: Any,
        command: str,
        arguments: str = "",
    ) -> HubResponse:
        """
        Send one command to a device.

        Callers must hold the command lock.

        Args:
            device_id: Target device
            command: Command name (e.g., "on", "setLevel")
            arguments: Already-encoded argument string ("" for none)

        Returns:
            The hub's response; statuses >= 400 are returned, not raised

        Raises:
            TransportError: If the request could not be completed
        """
        pass

    async def handle_device_event(self, data: Mapping[str, Any], source: str = "hubitat") -> Optional[Event]:
        """
        Apply a raw device event to the cache and publish it.

        Accepts the hub's event record ({"deviceId"|"id", "name", "value", ...}).

        Returns:
            The published Event, or None if the record had no device id
        """
        device_id = data.get("deviceId")
        if device_id is None:
            device_id = data.get("id")
        if device_id is None:
            logger.debug(f"Ignoring device event without device id: {data}")
            return None

        name = data.get("name")
        value = data.get("value")
        if name:
            self._apply_to_cache(device_id, name, value)

        payload = {k: v for k, v in data.items() if k not in ("deviceId", "id", "name", "value")}
        event = Event(
            type=ATTRIBUTE_CHANGED,
            source=source,
            device_id=device_id,
            name=name,
            value=value,
            payload=payload,
        )
        await self.events.publish(event)
        return event

    async def notify(self, event_type: str, source: str = "hubitat") -> None:
        """Publish a lifecycle event (system ready, connection opened/closed)."""
        logger.info(f"Hub {self.safe_id}: {event_type}")
        await self.events.publish(Event(type=event_type, source=source))

    def _apply_to_cache(self, device_id: Any, name: str, value: Any) -> None:
        device = find_raw_device(self.devices, device_id)
        if device is None:
            return
        attributes = device.get("attributes")
        if isinstance(attributes, list):
            for record in attributes:
                if isinstance(record, dict) and record.get("name") == name:
                    record["currentValue"] = value
                    record.pop("value", None)
                    return
            attributes.append({"name": name, "currentValue": value})
        elif isinstance(attributes, dict):
            current = attributes.get(name)
            if isinstance(current, dict):
                current["currentValue"] = value
                current.pop("value", None)
            else:
                attributes[name] = value
        else:
            device["attributes"] = {name: value}

    async def acquire_lock(self) -> None:
        """Wait for exclusive use of the command channel."""
        await self._command_lock.acquire()

    def release_lock(self) -> None:
        """Give up the command channel."""
        if self._command_lock.locked():
            self._command_lock.release()

    @property
    def is_locked(self) -> bool:
        return self._command_lock.locked()


class MockHubConnection(HubConnection):
    """
    Mock hub for testing.

    Holds devices in memory, records commands, and lets tests queue
    responses or failures per command.
    """

    def __init__(self, devices: Optional[Dict[Any, Dict[str, Any]]] = None, **kwargs: Any) -> None:
        kwargs.setdefault("name", "test hub")
        super().__init__(**kwargs)
        self._source_devices: Dict[Any, Dict[str, Any]] = dict(devices or {})
        self._commands: List[Tuple[str, str, str]] = []
        self._responses: Dict[Tuple[str, str], List[HubResponse]] = {}
        self._failures: Dict[Tuple[str, str], Exception] = {}
        self.refresh_count = 0
        self.refresh_error: Optional[Exception] = None
        self.command_latency = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def set_device(self, device_id: Any, device: Dict[str, Any]) -> None:
        """Set a device as the hub would report it on next refresh."""
        self._source_devices[device_id] = device

    def set_response(self, device_id: Any, command: str, status: int, text: str = "") -> None:
        """Queue a response for the next matching command."""
        key = (str(device_id), command)
        self._responses.setdefault(key, []).append(
            HubResponse(status=status, url=self.command_url(device_id, command), text=text)
        )

    def set_failure(self, device_id: Any, command: str, error: Exception) -> None:
        """Make every matching command raise error."""
        self._failures[(str(device_id), command)] = error

    def get_commands(self) -> List[Tuple[str, str, str]]:
        """Get recorded (device_id, command, arguments) tuples."""
        return self._commands.copy()

    def command_url(self, device_id: Any, command: str, arguments: str = "") -> str:
        url = f"http://{self.host or 'hub.local'}/devices/{device_id}/{command}"
        if arguments:
            url = f"{url}/{arguments}"
        return url

    # HubConnection implementation

    async def refresh_device_cache(self, force: bool = False) -> None:
        if self.devices_initialized and not force:
            return
        self.refresh_count += 1
        if self.refresh_error is not None:
            self.devices_initialized = False
            raise self.refresh_error
        self.devices = copy.deepcopy(self._source_devices)
        self.devices_initialized = True

    async def execute_command(
        self,
        device_id: Any,
        command: str,
        arguments: str = "",
    ) -> HubResponse:
        key = (str(device_id), command)
        self._commands.append((str(device_id), command, arguments))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.command_latency:
                await asyncio.sleep(self.command_latency)
            else:
                await asyncio.sleep(0)
            if key in self._failures:
                raise self._failures[key]
            queued = self._responses.get(key)
            if queued:
                return queued.pop(0)
            return HubResponse(
                status=200,
                url=self.command_url(device_id, command, arguments),
                text=json.dumps({"id": str(device_id), "command": command}),
            )
        finally:
            self.in_flight -= 1
