from __future__ import annotations

import json
from collections import deque
from typing import Any

import pytest

from archipelago_client.datapackage import DataPackageObject
from archipelago_client.errors import ConnectionClosedError
from archipelago_client.messages import Connected


class FakeTransport:
    """Scripted stand-in for WebSocketTransport.

    Frames are returned in order by receive_text; once they run out the
    connection behaves as closed. Sent frames are recorded decoded.
    """

    def __init__(self, frames: list[str] | None = None) -> None:
        self.frames: deque[str] = deque(frames or [])
        self.sent: list[list[dict[str, Any]]] = []
        self.closed = False
        self.url = "ws://fake:38281"

    def push(self, *messages: dict[str, Any]) -> None:
        """Queue one frame holding the given message objects."""
        self.frames.append(json.dumps(list(messages)))

    def sent_messages(self) -> list[dict[str, Any]]:
        return [message for frame in self.sent for message in frame]

    async def send_text(self, text: str) -> None:
        if self.closed:
            raise ConnectionClosedError("connection is closed")
        self.sent.append(json.loads(text))

    async def receive_text(self) -> str | None:
        if self.closed or not self.frames:
            return None
        return self.frames.popleft()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def room_info_msg() -> dict[str, Any]:
    return {
        "cmd": "RoomInfo",
        "version": {"major": 0, "minor": 5, "build": 1, "class": "Version"},
        "generator_version": {"major": 0, "minor": 5, "build": 1, "class": "Version"},
        "tags": ["AP"],
        "password": False,
        "permissions": {"release": 2, "collect": 2, "remaining": 0},
        "hint_cost": 10,
        "location_check_points": 1,
        "games": ["Archipelago", "Test Game", "Other Game"],
        "datapackage_checksums": {"Test Game": "abc123"},
        "seed_name": "12345678",
        "time": 1700000000.25,
    }


@pytest.fixture
def connected_msg() -> dict[str, Any]:
    return {
        "cmd": "Connected",
        "team": 0,
        "slot": 1,
        "players": [
            {"team": 0, "slot": 1, "alias": "Alice", "name": "Alice"},
            {"team": 0, "slot": 2, "alias": "Bobby", "name": "Bob"},
        ],
        "missing_locations": [10, 11],
        "checked_locations": [12],
        "slot_data": {"goal": 1},
        "slot_info": {
            "1": {"name": "Alice", "game": "Test Game", "type": 1, "group_members": []},
            "2": {"name": "Bob", "game": "Other Game", "type": 1, "group_members": []},
        },
        "hint_points": 5,
    }


@pytest.fixture
def data_package_msg() -> dict[str, Any]:
    return {
        "cmd": "DataPackage",
        "data": {
            "games": {
                "Test Game": {
                    "item_name_to_id": {"Sword": 42, "Shield": 43},
                    "location_name_to_id": {"Chest": 10, "Cave": 11, "Tower": 12},
                    "checksum": "abc123",
                }
            }
        },
    }


@pytest.fixture
def connected(connected_msg) -> Connected:
    return Connected.from_dict(connected_msg)


@pytest.fixture
def data_package(data_package_msg) -> DataPackageObject:
    return DataPackageObject.from_dict(data_package_msg["data"])


@pytest.fixture
def transport(room_info_msg) -> FakeTransport:
    """A transport whose first frame is the RoomInfo handshake."""
    fake = FakeTransport()
    fake.push(room_info_msg)
    return fake
