"""Tests for the command dispatcher."""

import asyncio

import pytest

from hubitat_flow.core.errors import ProtocolError, TransportError
from hubitat_flow.core.hub import MockHubConnection
from hubitat_flow.nodes.restore import CommandDispatcher, PlannedCommand, encode_arguments


@pytest.fixture
def hub():
    return MockHubConnection()


@pytest.fixture
def dispatcher(hub):
    return CommandDispatcher(hub)


class TestEncodeArguments:
    """Tests for argument encoding."""

    def test_no_arguments(self):
        assert encode_arguments(None) == ""

    def test_positional(self):
        assert encode_arguments([70]) == "70"
        assert encode_arguments([2700, 50]) == "2700,50"

    def test_structured(self):
        assert encode_arguments({"hue": 66, "saturation": 90, "level": 80}) == (
            '{"hue":66,"saturation":90,"level":80}'
        )


class TestExecute:
    """Tests for single command execution."""

    def test_success_outcome(self, hub, dispatcher):
        outcome = asyncio.run(dispatcher.execute(PlannedCommand("12", "setLevel", [70])))

        assert outcome.to_dict() == {
            "deviceId": "12",
            "command": "setLevel",
            "requestArguments": "70",
            "responseStatus": 200,
            "response": {"id": "12", "command": "setLevel"},
        }
        assert hub.get_commands() == [("12", "setLevel", "70")]
        assert hub.is_locked is False

    def test_non_json_response_kept_as_text(self, hub, dispatcher):
        hub.set_response("12", "on", 200, "OK")
        outcome = asyncio.run(dispatcher.execute(PlannedCommand("12", "on")))
        assert outcome.response == "OK"

    def test_error_status_raises_protocol_error(self, hub, dispatcher):
        hub.set_response("12", "on", 400, "Device not found in Maker API")

        with pytest.raises(ProtocolError) as exc_info:
            asyncio.run(dispatcher.execute(PlannedCommand("12", "on")))

        error = exc_info.value
        assert error.body == "Device not found in Maker API"
        assert error.url.endswith("/devices/12/on")
        assert error.outcome.response_status == 400
        assert error.outcome.response == "Device not found in Maker API"
        # Lock is released on the failure path too
        assert hub.is_locked is False

    def test_unexpected_fault_wrapped(self, hub, dispatcher):
        hub.set_failure("12", "on", RuntimeError("socket closed"))

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(dispatcher.execute(PlannedCommand("12", "on")))

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.device_id == "12"
        assert hub.is_locked is False

    def test_transport_error_passes_through(self, hub, dispatcher):
        error = TransportError("timeout", device_id="12", command="on")
        hub.set_failure("12", "on", error)

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(dispatcher.execute(PlannedCommand("12", "on")))

        assert exc_info.value is error


class TestRunPlan:
    """Tests for plan execution, serialization and pacing."""

    def test_commands_run_in_order(self, hub, dispatcher):
        plan = [PlannedCommand("12", "on"), PlannedCommand("12", "setLevel", [70])]
        seen = []

        outcomes = asyncio.run(dispatcher.run_plan(plan, on_outcome=seen.append))

        assert [c[1] for c in hub.get_commands()] == ["on", "setLevel"]
        assert seen == outcomes

    def test_failure_aborts_rest_of_plan(self, hub, dispatcher):
        hub.set_response("12", "on", 400, "bad")
        plan = [PlannedCommand("12", "on"), PlannedCommand("12", "setLevel", [70])]

        with pytest.raises(ProtocolError):
            asyncio.run(dispatcher.run_plan(plan))

        assert hub.get_commands() == [("12", "on", "")]

    def test_one_command_in_flight(self, hub, dispatcher):
        """Concurrent plans serialize on the hub's command lock."""
        hub.command_latency = 0.01
        first = [PlannedCommand("1", "on"), PlannedCommand("1", "setLevel", [10])]
        second = [PlannedCommand("2", "on"), PlannedCommand("2", "setLevel", [20])]

        async def scenario():
            await asyncio.gather(dispatcher.run_plan(first), dispatcher.run_plan(second))

        asyncio.run(scenario())

        assert len(hub.get_commands()) == 4
        assert hub.max_in_flight == 1

    def test_pacing_delay_between_commands(self):
        hub = MockHubConnection(command_delay=0.05)
        dispatcher = CommandDispatcher(hub)
        plan = [PlannedCommand("1", "on"), PlannedCommand("1", "off")]

        async def scenario():
            loop = asyncio.get_running_loop()
            started = loop.time()
            await dispatcher.run_plan(plan)
            return loop.time() - started

        elapsed = asyncio.run(scenario())

        # Two paced releases (small allowance for clock resolution)
        assert elapsed >= 0.09
        assert hub.is_locked is False

    def test_concurrent_plans_are_paced(self):
        """Two device plans share the lock, and every release waits the delay."""
        hub = MockHubConnection(command_delay=0.05)
        dispatcher = CommandDispatcher(hub)
        first = [PlannedCommand("1", "on"), PlannedCommand("1", "setLevel", [10])]
        second = [PlannedCommand("2", "on"), PlannedCommand("2", "setLevel", [20])]

        async def scenario():
            loop = asyncio.get_running_loop()
            started = loop.time()
            await asyncio.gather(dispatcher.run_plan(first), dispatcher.run_plan(second))
            return loop.time() - started

        elapsed = asyncio.run(scenario())

        assert len(hub.get_commands()) == 4
        assert hub.max_in_flight == 1
        # Four paced releases (small allowance for clock resolution)
        assert elapsed >= 0.19
        assert hub.is_locked is False
