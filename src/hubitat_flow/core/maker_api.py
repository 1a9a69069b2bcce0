"""
Hub connection backed by the Hubitat Maker API.

Only the two calls the library needs are implemented: listing devices (to
fill the cache) and sending a device command. Event delivery (websocket or
POST-back) is left to the integration, which forwards records to
HubConnection.handle_device_event().
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import aiohttp

from hubitat_flow.core.bus import EventBus
from hubitat_flow.core.errors import TransportError
from hubitat_flow.core.hub import HubConnection, HubResponse

logger = logging.getLogger(__name__)


@dataclass
class HubConfig:
    """Connection settings for a Maker API app instance."""

    host: str
    app_id: str
    token: str
    name: str = ""
    use_ssl: bool = False
    command_delay: float = 0.0  # Seconds the lock stays held after each command
    timeout: float = 10.0

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.host}/apps/api/{self.app_id}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HubConfig":
        """
        Build from host runtime settings.

        Accepts the runtime's keys (appId, delayCommands in milliseconds)
        as well as the snake_case field names.
        """
        delay = data.get("command_delay")
        if delay is None and data.get("delayCommands") is not None:
            delay = float(data["delayCommands"]) / 1000.0
        return cls(
            host=data["host"],
            app_id=str(data.get("app_id", data.get("appId", ""))),
            token=data.get("token", ""),
            name=data.get("name", ""),
            use_ssl=bool(data.get("use_ssl", data.get("usetls", False))),
            command_delay=float(delay or 0.0),
            timeout=float(data.get("timeout", 10.0)),
        )


class MakerApiHub(HubConnection):
    """
    Maker API hub connection.

    A caller-owned aiohttp session may be passed in; otherwise a short-lived
    session is opened per request.
    """

    def __init__(
        self,
        config: HubConfig,
        session: Optional[aiohttp.ClientSession] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        super().__init__(
            name=config.name,
            host=config.host,
            hub_id=config.app_id,
            command_delay=config.command_delay,
            events=events,
        )
        self.config = config
        self._session = session
        self._refresh_lock = asyncio.Lock()

    def command_url(self, device_id: Any, command: str, arguments: str = "") -> str:
        """Command URL without the access token (safe to log)."""
        url = f"{self.config.base_url}/devices/{quote(str(device_id), safe='')}/{quote(command, safe='')}"
        if arguments:
            url = f"{url}/{quote(arguments, safe='')}"
        return url

    async def refresh_device_cache(self, force: bool = False) -> None:
        async with self._refresh_lock:
            if self.devices_initialized and not force:
                return

            url = f"{self.config.base_url}/devices/all"
            try:
                status, text, data = await self._get(url)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.devices_initialized = False
                raise TransportError(f"Device list request failed: {e}", cause=e) from e

            if status >= 400 or not isinstance(data, list):
                self.devices_initialized = False
                raise TransportError(f"Device list request failed ({status}): {text}")

            self.devices = {str(device["id"]): device for device in data if "id" in device}
            self.devices_initialized = True
            logger.debug(f"Hub {self.safe_id}: cached {len(self.devices)} devices")

    async def execute_command(
        self,
        device_id: Any,
        command: str,
        arguments: str = "",
    ) -> HubResponse:
        url = self.command_url(device_id, command, arguments)
        try:
            status, text, _ = await self._get(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Command request failed: {e}",
                device_id=device_id,
                command=command,
                cause=e,
            ) from e
        return HubResponse(status=status, url=url, text=text)

    async def _get(self, url: str) -> Tuple[int, str, Any]:
        """GET url with the access token; returns (status, text, json-or-None)."""
        params = {"access_token": self.config.token}
        if self._session is not None:
            return await self._read(self._session, url, params)

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            return await self._read(session, url, params)

    @staticmethod
    async def _read(session: Any, url: str, params: Dict[str, str]) -> Tuple[int, str, Any]:
        async with session.get(url, params=params) as r:
            text = await r.text()
            try:
                data = await r.json(content_type=None)
            except ValueError:
                data = None
            return r.status, text, data
