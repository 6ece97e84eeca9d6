"""
Tests for message types and protocol enumerations.

Covers:
- items_handling normalization
- Connected decoding (int-keyed slot_info, optional hint_points)
- RoomUpdate folding into RoomInfo and Connected
"""

from __future__ import annotations

import pytest

from archipelago_client.constants import (
    ItemsHandlingFlags,
    NetworkItemFlags,
    Permission,
    SlotType,
    normalize_items_handling,
)
from archipelago_client.messages import (
    Connected,
    ConnectUpdate,
    ReceivedItems,
    RoomInfo,
    RoomUpdate,
)
from archipelago_client.models import NetworkPlayer, NetworkVersion


class TestItemsHandling:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (0b000, 0b000),
            (0b001, 0b001),
            (0b010, 0b011),
            (0b100, 0b101),
            (0b110, 0b111),
            (0b111, 0b111),
        ],
    )
    def test_other_worlds_implied(self, raw, expected):
        assert normalize_items_handling(raw) == ItemsHandlingFlags(expected)

    def test_out_of_range_bits_rejected(self):
        with pytest.raises(ValueError):
            normalize_items_handling(0b1000)

    def test_connect_update_sends_normalized_bits(self):
        message = ConnectUpdate(items_handling=ItemsHandlingFlags.STARTING_INVENTORY, tags=["AP"])
        assert message.to_dict() == {"cmd": "ConnectUpdate", "items_handling": 5, "tags": ["AP"]}


class TestConnected:
    def test_slot_info_keyed_by_int(self, connected):
        assert set(connected.slot_info) == {1, 2}
        assert connected.slot_info[2].game == "Other Game"
        assert connected.slot_info[1].type is SlotType.PLAYER

    def test_slot_info_goes_back_to_string_keys(self, connected):
        assert set(connected.to_dict()["slot_info"]) == {"1", "2"}

    def test_hint_points_default(self, connected_msg):
        del connected_msg["hint_points"]
        assert Connected.from_dict(connected_msg).hint_points == 0

    def test_non_numeric_slot_key_rejected(self, connected_msg):
        connected_msg["slot_info"]["one"] = connected_msg["slot_info"].pop("1")
        with pytest.raises(ValueError):
            Connected.from_dict(connected_msg)

    def test_player_lookup(self, connected):
        assert connected.player(2) == NetworkPlayer(team=0, slot=2, alias="Bobby", name="Bob")
        assert connected.player(2, team=1) is None


class TestReceivedItems:
    def test_item_flags(self):
        message = ReceivedItems.from_dict(
            {
                "cmd": "ReceivedItems",
                "index": 3,
                "items": [{"item": 42, "location": 10, "player": 2, "flags": 5}],
            }
        )
        assert message.index == 3
        assert message.items[0].flags == NetworkItemFlags.PROGRESSION | NetworkItemFlags.TRAP


class TestRoomUpdate:
    def test_absent_fields_are_none(self):
        update = RoomUpdate.from_dict({"cmd": "RoomUpdate", "hint_cost": 20})
        assert update.hint_cost == 20
        assert update.players is None
        assert update.to_dict() == {"cmd": "RoomUpdate", "hint_cost": 20}

    def test_room_info_apply_update(self, room_info_msg):
        info = RoomInfo.from_dict(room_info_msg)
        update = RoomUpdate(
            hint_cost=25,
            permissions={"release": Permission.DISABLED},
            version=NetworkVersion(0, 6, 1),
        )
        updated = info.apply_update(update)
        assert updated.hint_cost == 25
        assert updated.permissions == {"release": Permission.DISABLED}
        assert updated.version == NetworkVersion(0, 6, 1)
        assert updated.seed_name == info.seed_name
        assert info.hint_cost == 10

    def test_connected_apply_update(self, connected):
        update = RoomUpdate(checked_locations=[10, 12], hint_points=8)
        updated = connected.apply_update(update)
        assert updated.checked_locations == [12, 10]
        assert updated.missing_locations == [11]
        assert updated.hint_points == 8
        assert updated.players == connected.players

    def test_connected_apply_roster(self, connected):
        roster = [NetworkPlayer(team=0, slot=1, alias="Ally", name="Alice")]
        updated = connected.apply_update(RoomUpdate(players=roster))
        assert updated.players == roster
        assert updated.missing_locations == connected.missing_locations
