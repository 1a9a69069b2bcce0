"""Tests for the restore node, including capture -> restore round trips."""

import asyncio

import pytest

from hubitat_flow.core.errors import TransportError
from hubitat_flow.core.host import MockNodeHost
from hubitat_flow.core.hub import MockHubConnection
from hubitat_flow.nodes.capture import CaptureNode, SnapshotStore
from hubitat_flow.nodes.restore import RestoreConfig, RestoreNode


@pytest.fixture
def hub():
    return MockHubConnection(
        devices={
            "12": {"id": "12", "label": "Kitchen Lamp", "attributes": {"switch": "on", "level": 70}},
            "13": {"id": "13", "label": "Hall Lamp", "attributes": {"switch": "off", "level": 70}},
            "20": {
                "id": "20",
                "label": "Hue Bulb",
                "attributes": {
                    "switch": "on",
                    "colorMode": "CT",
                    "colorTemperature": 2700,
                    "level": 50,
                },
            },
        }
    )


@pytest.fixture
def host():
    return MockNodeHost()


def capture_then_restore(host, hub, device_ids, message=None, before_restore=None):
    capture = CaptureNode("cap1", host, hub, {"deviceId": device_ids})
    restore = RestoreNode("res1", host, hub, {"devices": device_ids})

    async def scenario():
        await capture.on_input({})
        if before_restore is not None:
            before_restore()
        await restore.on_input(message or {"payload": "restore"})

    asyncio.run(scenario())
    return restore


class TestRestoreConfig:
    """Tests for restore node configuration."""

    def test_devices_list(self):
        assert RestoreConfig.from_dict({"devices": ["1", {"id": "2"}]}).device_ids == ["1", "2"]

    def test_falls_back_to_device_id(self):
        assert RestoreConfig.from_dict({"deviceId": 7}).device_ids == [7]


class TestRoundTrip:
    """Tests for capturing and then restoring devices."""

    def test_dimmer_on(self, host, hub):
        capture_then_restore(host, hub, ["12"])

        assert hub.get_commands() == [("12", "on", ""), ("12", "setLevel", "70")]
        records = host.get_sent("res1")
        assert [r["command"] for r in records] == ["on", "setLevel"]
        assert records[1]["requestArguments"] == "70"
        assert records[1]["responseStatus"] == 200
        assert records[1]["payload"] == "restore"

    def test_dimmer_off(self, host, hub):
        capture_then_restore(host, hub, ["13"])
        assert hub.get_commands() == [("13", "off", "")]

    def test_color_temperature(self, host, hub):
        capture_then_restore(host, hub, ["20"])
        assert hub.get_commands() == [("20", "setColorTemperature", "2700,50")]

    def test_capture_and_restore_by_label(self, host, hub):
        """A device configured by label is restored by its resolved id."""
        capture_then_restore(host, hub, ["Kitchen Lamp"])

        assert hub.get_commands() == [("12", "on", ""), ("12", "setLevel", "70")]
        assert SnapshotStore(host.flow_context, hub).take("Kitchen Lamp") is None

    def test_restore_consumes_snapshot(self, host, hub):
        restore = capture_then_restore(host, hub, ["12"])
        store = SnapshotStore(host.flow_context, hub)

        assert store.take("12") is None

        # A second restore has nothing to replay
        asyncio.run(restore.on_input({}))
        assert len(hub.get_commands()) == 2

    def test_status_after_restore(self, host, hub):
        capture_then_restore(host, hub, ["12"])
        status = host.last_status("res1")
        assert status.fill == "green"
        assert status.text.startswith("restored Kitchen Lamp")


class TestFailures:
    """Tests for per-device failure reporting."""

    def test_validation_error_record(self, host, hub):
        store = SnapshotStore(host.flow_context, hub)
        restore = RestoreNode("res1", host, hub, {"devices": ["20", "12"]})

        async def scenario():
            await store.capture(["12"], owner="cap1")
            host.flow_context.set(
                store.key("20"),
                {"id": "20", "name": "Hue Bulb", "switch": "on", "colorMode": "CT", "colorTemperature": 2700},
            )
            await restore.on_input({"payload": "restore"})

        asyncio.run(scenario())

        errors = [r for r in host.get_sent("res1") if r.get("error")]
        assert len(errors) == 1
        assert errors[0]["deviceId"] == "20"
        assert errors[0]["restored"] is False
        assert errors[0]["deviceState"]["colorTemperature"] == 2700
        assert "setColorTemperature" in errors[0]["errorMsg"]
        # The sibling device is still restored
        assert ("12", "setLevel", "70") in hub.get_commands()

    def test_error_status_aborts_only_that_device(self, host, hub):
        hub.set_response("12", "on", 400, "Command failed")

        capture_then_restore(host, hub, ["12", "20"])

        commands = hub.get_commands()
        assert ("12", "setLevel", "70") not in commands
        assert ("20", "setColorTemperature", "2700,50") in commands

        failures = [r for r in host.get_sent("res1") if r["responseStatus"] == 400]
        assert len(failures) == 1
        assert failures[0]["response"] == "Command failed"
        assert failures[0]["url"].endswith("/devices/12/on")
        assert any(s.text == "response error" for s in host.get_statuses("res1"))

    def test_transport_error_sets_status(self, host, hub):
        capture_then_restore(
            host,
            hub,
            ["12"],
            before_restore=lambda: hub.set_failure("12", "on", ConnectionResetError("reset")),
        )

        assert host.get_sent("res1") == []
        assert host.last_status("res1").text == "ConnectionResetError"

    def test_transport_error_without_cause(self, host, hub):
        hub.set_failure("12", "on", TransportError("hub offline", device_id="12", command="on"))

        capture_then_restore(host, hub, ["12"])

        assert host.last_status("res1").text == "transport error"

    def test_no_saved_state(self, host, hub):
        restore = RestoreNode("res1", host, hub, {"devices": ["12"]})

        asyncio.run(restore.on_input({}))

        assert hub.get_commands() == []
        assert host.get_sent() == []


class TestLifecycle:
    """Tests for input without devices and close."""

    def test_no_devices_passes_message_through(self, host, hub):
        restore = RestoreNode("res1", host, hub, {"devices": []})
        message = {"payload": "restore"}

        asyncio.run(restore.on_input(message))

        assert host.get_sent("res1") == [message]

    def test_close_removed_clears_snapshots(self, host, hub):
        capture = CaptureNode("cap1", host, hub, {"deviceId": ["12"]})
        restore = RestoreNode("res1", host, hub, {"devices": ["12"]})
        store = SnapshotStore(host.flow_context, hub)

        async def scenario():
            await capture.on_input({})
            await restore.close()
            kept = store.take("12")
            await restore.close(removed=True)
            return kept

        kept = asyncio.run(scenario())

        assert kept is not None
        assert store.take("12") is None

    def test_missing_hub_is_inert(self, host):
        restore = RestoreNode("res1", host, None, {"devices": ["12"]})

        asyncio.run(restore.on_input({}))

        assert restore.is_configured is False
        assert host.get_sent() == []
