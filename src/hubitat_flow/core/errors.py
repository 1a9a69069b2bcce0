"""
Error types for hubitat-flow.

Failures are scoped: anything tied to a single device (validation, transport,
protocol) is reported for that device only and never fails a whole batch.
Only a missing hub connection is fatal to a node.
"""

from typing import Any, Optional


class HubitatFlowError(Exception):
    """Base class for all hubitat-flow errors."""


class ConfigurationError(HubitatFlowError):
    """A node was created without a usable hub connection."""


class ValidationError(HubitatFlowError):
    """
    A snapshot is missing fields required by its device class.

    Attributes:
        device_id: Device the snapshot belongs to
        message: Human-readable description of the missing fields
    """

    def __init__(self, device_id: Any, message: str) -> None:
        super().__init__(message)
        self.device_id = device_id
        self.message = message


class TransportError(HubitatFlowError):
    """
    The hub could not be reached (cache refresh or command request).

    Attributes:
        device_id: Device being acted on (None for cache refreshes)
        command: Command being sent (None for cache refreshes)
        cause: The underlying exception
    """

    def __init__(
        self,
        message: str,
        device_id: Any = None,
        command: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.device_id = device_id
        self.command = command
        self.cause = cause


class ProtocolError(HubitatFlowError):
    """
    The hub answered a command with an HTTP status >= 400.

    Attributes:
        url: Request URL (without access token)
        body: Raw response body, verbatim
        outcome: The partially filled dispatch outcome for the command
    """

    def __init__(self, url: str, body: str, outcome: Any = None) -> None:
        super().__init__(f"{url}: {body}")
        self.url = url
        self.body = body
        self.outcome = outcome
