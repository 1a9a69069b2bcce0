#!/usr/bin/env python3
"""
Quick example demonstrating hubitat-flow basic usage.

Uses the in-memory hub and host, so no hub is needed.
Run with: PYTHONPATH=src python3 example.py
"""

import asyncio
import logging

from hubitat_flow.core.hub import MockHubConnection
from hubitat_flow.core.host import MockNodeHost
from hubitat_flow.nodes.capture import CaptureNode
from hubitat_flow.nodes.logic import LogicNode
from hubitat_flow.nodes.restore import RestoreNode


async def main() -> None:
    print("=" * 60)
    print("hubitat-flow Example")
    print("=" * 60)

    # 1. Collaborators
    print("\n1. Creating hub connection and host...")
    devices = {
        "12": {"id": "12", "label": "Kitchen Lamp", "attributes": {"switch": "on", "level": 70}},
        "20": {
            "id": "20",
            "label": "Hue Bulb",
            "attributes": {"switch": "on", "colorMode": "CT", "colorTemperature": 2700, "level": 50},
        },
    }
    hub = MockHubConnection(devices=devices, command_delay=0.1)
    host = MockNodeHost()
    print(f"   ✓ Hub '{hub.name}' with {len(devices)} devices")

    # 2. Logic node
    print("\n2. Starting logic node (ANY light on)...")
    logic = LogicNode(
        "logic1",
        host,
        hub,
        {"deviceId": ["12", "20"], "mode": "any", "sendEvents": True, "name": "lights"},
    )
    await logic.start()
    print(f"   ✓ Status: {host.last_status('logic1').text}")

    # 3. Capture
    print("\n3. Capturing device state...")
    capture = CaptureNode("cap1", host, hub, {"deviceId": ["12", "20"], "name": "evening"})
    await capture.on_input({"payload": "capture"})
    print(f"   ✓ {host.get_sent('cap1')[-1]['payload']}")

    # 4. Lights change
    print("\n4. Turning everything off...")
    await hub.handle_device_event({"deviceId": "12", "name": "switch", "value": "off"})
    await hub.handle_device_event({"deviceId": "20", "name": "switch", "value": "off"})
    print(f"   ✓ Logic state: {logic.engine.logic_state}")

    # 5. Restore
    print("\n5. Restoring captured state...")
    restore = RestoreNode("res1", host, hub, {"devices": ["12", "20"]})
    await restore.on_input({"payload": "restore"})
    for device_id, command, arguments in hub.get_commands():
        print(f"   ✓ {device_id}: {command}({arguments})")

    await logic.close()
    await capture.close()
    await restore.close(removed=True)

    print("\n" + "=" * 60)
    print("Done")
    print("=" * 60)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
