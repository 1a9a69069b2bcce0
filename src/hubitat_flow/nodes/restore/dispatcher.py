"""
Command dispatcher.

Sends planned commands to the hub one at a time. Every command holds the
hub's command lock for its whole request; when the hub has a pacing delay,
the lock stays held for that long after the response, so commands from all
nodes on the hub are spaced out.
"""

import asyncio
import json
import logging
from typing import Callable, Iterable, List, Optional

from hubitat_flow.core.errors import HubitatFlowError, ProtocolError, TransportError
from hubitat_flow.core.hub import HubConnection

from .models import CommandArguments, DispatchOutcome, PlannedCommand

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[DispatchOutcome], None]


def encode_arguments(arguments: CommandArguments) -> str:
    """
    Encode command arguments for the hub.

    Positional lists become comma-joined values ("2700,50"); structured
    arguments become compact JSON.
    """
    if arguments is None:
        return ""
    if isinstance(arguments, dict):
        return json.dumps(arguments, separators=(",", ":"))
    return ",".join(str(argument) for argument in arguments)


class CommandDispatcher:
    """
    Executes planned commands through the hub's command lock.

    Responsibilities:
    - Hold the lock for exactly one command at a time
    - Apply the hub's pacing delay before releasing the lock
    - Turn HTTP status >= 400 into ProtocolError
    - Stop a device's plan at its first failure
    """

    def __init__(self, hub: HubConnection) -> None:
        self._hub = hub

    async def execute(self, command: PlannedCommand) -> DispatchOutcome:
        """
        Send one command.

        Returns:
            Outcome with the decoded JSON response

        Raises:
            ProtocolError: Hub answered with status >= 400 (outcome attached)
            TransportError: Request could not be completed
        """
        arguments = encode_arguments(command.arguments)
        outcome = DispatchOutcome(
            device_id=str(command.device_id),
            command=command.command,
            request_arguments=arguments,
        )

        await self._hub.acquire_lock()
        try:
            try:
                response = await self._hub.execute_command(command.device_id, command.command, arguments)
            except HubitatFlowError:
                raise
            except Exception as e:
                raise TransportError(
                    f"Command {command.command} for device {command.device_id} failed: {e}",
                    device_id=command.device_id,
                    command=command.command,
                    cause=e,
                ) from e

            outcome.response_status = response.status
            if response.status >= 400:
                outcome.response = response.text
                raise ProtocolError(response.url, response.text, outcome)

            try:
                outcome.response = response.json()
            except ValueError:
                logger.debug(f"Non-JSON response for {command.command} on {command.device_id}")
                outcome.response = response.text
            logger.debug(
                f"Executed {command.command}({arguments}) on {command.device_id}: {response.status}"
            )
            return outcome
        finally:
            await self._release()

    async def run_plan(
        self,
        commands: Iterable[PlannedCommand],
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> List[DispatchOutcome]:
        """
        Execute a device's plan in order.

        The first failure aborts the rest of the plan and propagates.

        Args:
            commands: Planned commands for one device
            on_outcome: Called with each successful outcome as it arrives

        Returns:
            Outcomes of all commands
        """
        outcomes = []
        for command in commands:
            outcome = await self.execute(command)
            outcomes.append(outcome)
            if on_outcome is not None:
                on_outcome(outcome)
        return outcomes

    async def _release(self) -> None:
        try:
            if self._hub.command_delay:
                await asyncio.sleep(self._hub.command_delay)
        finally:
            self._hub.release_lock()
