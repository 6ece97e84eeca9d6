"""
Tests for the Client session over a scripted transport.

Covers:
- RoomInfo handshake
- Receive ordering across frames
- Selective waits and requeueing of unrelated messages
- Slot join (accepted, refused, invalid)
- Data package, data storage and DeathLink helpers
- Splitting into sender and receiver halves
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from archipelago_client.client import Client, ClientConfig, DeathLinkOptions
from archipelago_client.constants import ClientStatus, ItemsHandlingFlags
from archipelago_client.errors import (
    ConnectionClosedError,
    IllegalResponseError,
    MalformedMessageError,
    SlotRefusedError,
)
from archipelago_client.messages import (
    DataStorageOperation,
    Print,
    ReceivedItems,
    Retrieved,
    RoomUpdate,
    SetReply,
)
from archipelago_client.rich_message import TextPart
from conftest import FakeTransport


def _print(text: str) -> dict:
    return {"cmd": "Print", "text": text}


# ── Handshake ─────────────────────────────────────────────────────

class TestHandshake:
    @pytest.mark.asyncio
    async def test_room_info_first(self, transport):
        client = await Client.from_transport(transport)
        assert client.room_info.seed_name == "12345678"
        assert client.connected is None
        assert client.data_package is None

    @pytest.mark.asyncio
    async def test_rest_of_first_frame_is_buffered(self, room_info_msg):
        transport = FakeTransport()
        transport.push(room_info_msg, _print("welcome"))
        client = await Client.from_transport(transport)
        assert await client.receive() == Print(text="welcome")

    @pytest.mark.asyncio
    async def test_other_first_message_is_illegal(self):
        transport = FakeTransport()
        transport.push(_print("hello"))
        with pytest.raises(IllegalResponseError) as exc_info:
            await Client.from_transport(transport)
        assert exc_info.value.expected == "RoomInfo"
        assert exc_info.value.received_type == "Print"

    @pytest.mark.asyncio
    async def test_closed_before_room_info(self):
        with pytest.raises(ConnectionClosedError):
            await Client.from_transport(FakeTransport())

    @pytest.mark.asyncio
    async def test_malformed_first_frame(self):
        with pytest.raises(MalformedMessageError):
            await Client.from_transport(FakeTransport(["not json"]))


# ── Receiving ─────────────────────────────────────────────────────

class TestReceive:
    @pytest.mark.asyncio
    async def test_order_across_frames(self, transport):
        transport.push(_print("a"), _print("b"))
        transport.push(_print("c"))
        client = await Client.from_transport(transport)
        texts = [(await client.receive()).text for _ in range(3)]
        assert texts == ["a", "b", "c"]
        assert await client.receive() is None

    @pytest.mark.asyncio
    async def test_empty_frames_skipped(self, transport):
        transport.frames.append("[]")
        transport.push(_print("a"))
        client = await Client.from_transport(transport)
        assert await client.receive() == Print(text="a")

    @pytest.mark.asyncio
    async def test_async_iteration(self, transport):
        transport.push(_print("a"))
        transport.push(_print("b"))
        client = await Client.from_transport(transport)
        assert [m.text async for m in client] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_bad_rich_print_does_not_cost_the_frame(self, transport):
        transport.push(
            {"cmd": "ReceivedItems", "index": 0, "items": [{"item": 42, "location": 10, "player": 2, "flags": 0}]},
            {"cmd": "PrintJSON", "data": [{"type": "item_id", "text": "42"}]},
            {"cmd": "PrintJSON", "type": "Join", "team": 0, "slot": 1, "data": [{"text": "Alice joined"}]},
        )
        client = await Client.from_transport(transport)

        items = await client.receive()
        fragment_print = await client.receive()
        join_print = await client.receive()

        assert isinstance(items, ReceivedItems)
        assert items.items[0].item == 42
        assert fragment_print.data == [TextPart("42")]
        assert join_print.type is None
        assert str(join_print) == "Alice joined"


# ── Selective waits ───────────────────────────────────────────────

class TestSelectiveWait:
    @pytest.mark.asyncio
    async def test_skipped_messages_keep_their_order(self, room_info_msg):
        transport = FakeTransport()
        transport.push(room_info_msg, _print("x"))
        transport.push(_print("y"), {"cmd": "Retrieved", "keys": {"k": 1}})
        transport.push(_print("z"))
        client = await Client.from_transport(transport)

        reply = await client.get(["k"])

        assert reply == Retrieved(keys={"k": 1})
        assert transport.sent_messages() == [{"cmd": "Get", "keys": ["k"]}]
        assert [(await client.receive()).text for _ in range(3)] == ["x", "y", "z"]

    @pytest.mark.asyncio
    async def test_skipped_messages_requeued_on_close(self, transport):
        transport.push(_print("a"), _print("b"))
        client = await Client.from_transport(transport)
        with pytest.raises(ConnectionClosedError):
            await client.sync()
        assert [(await client.receive()).text for _ in range(2)] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_invalid_packet_for_request(self, transport):
        transport.push(
            _print("a"),
            {"cmd": "InvalidPacket", "type": "arguments", "text": "bad keys", "original_cmd": "Get"},
        )
        client = await Client.from_transport(transport)
        with pytest.raises(IllegalResponseError):
            await client.get(["k"])
        assert await client.receive() == Print(text="a")

    @pytest.mark.asyncio
    async def test_invalid_packet_for_other_request_is_queued(self, transport):
        transport.push(
            {"cmd": "InvalidPacket", "type": "cmd", "text": "nope", "original_cmd": "Say"},
            {"cmd": "Retrieved", "keys": {}},
        )
        client = await Client.from_transport(transport)
        await client.get(["k"])
        assert (await client.receive()).cmd == "InvalidPacket"

    @pytest.mark.asyncio
    async def test_set_waits_for_reply(self, transport):
        transport.push({"cmd": "SetReply", "key": "k", "value": 3, "original_value": 2})
        client = await Client.from_transport(transport)
        reply = await client.set("k", 0, True, [DataStorageOperation("add", 1)])
        assert isinstance(reply, SetReply)
        assert reply.value == 3
        assert transport.sent_messages() == [
            {
                "cmd": "Set",
                "key": "k",
                "default": 0,
                "want_reply": True,
                "operations": [{"operation": "add", "value": 1}],
            }
        ]

    @pytest.mark.asyncio
    async def test_location_scouts(self, transport):
        transport.push(
            {"cmd": "LocationInfo", "locations": [{"item": 42, "location": 10, "player": 1, "flags": 0}]}
        )
        client = await Client.from_transport(transport)
        info = await client.location_scouts([10], create_as_hint=2)
        assert info.locations[0].item == 42
        assert transport.sent_messages()[0] == {
            "cmd": "LocationScouts",
            "locations": [10],
            "create_as_hint": 2,
        }


# ── Joining a slot ────────────────────────────────────────────────

class TestConnectSlot:
    @pytest.mark.asyncio
    async def test_connected(self, transport, connected_msg):
        transport.push(_print("someone joined"), connected_msg)
        client = await Client.from_transport(transport, config=ClientConfig(uuid="abc"))

        connected = await client.connect_slot("Test Game", "Alice", tags=["AP"])

        assert connected.slot == 1
        assert client.connected is connected
        assert client.slot_name == "Alice"
        (sent,) = transport.sent_messages()
        assert sent["cmd"] == "Connect"
        assert sent["name"] == "Alice"
        assert sent["uuid"] == "abc"
        assert sent["items_handling"] == 7
        assert sent["tags"] == ["AP"]
        assert await client.receive() == Print(text="someone joined")

    @pytest.mark.asyncio
    async def test_items_handling_normalized(self, transport, connected_msg):
        transport.push(connected_msg)
        client = await Client.from_transport(transport)
        await client.connect_slot("Test Game", "Alice", items_handling=ItemsHandlingFlags.OWN_WORLD)
        assert transport.sent_messages()[0]["items_handling"] == 3

    @pytest.mark.asyncio
    async def test_refused(self, transport):
        transport.push({"cmd": "ConnectionRefused", "errors": ["InvalidSlot"]})
        client = await Client.from_transport(transport)
        with pytest.raises(SlotRefusedError) as exc_info:
            await client.connect_slot("Test Game", "Nobody")
        assert exc_info.value.errors == ["InvalidSlot"]
        assert client.connected is None

    @pytest.mark.asyncio
    async def test_invalid_packet(self, transport):
        transport.push({"cmd": "InvalidPacket", "type": "arguments", "text": "bad"})
        client = await Client.from_transport(transport)
        with pytest.raises(IllegalResponseError) as exc_info:
            await client.connect_slot("Test Game", "Alice")
        assert not isinstance(exc_info.value, SlotRefusedError)

    @pytest.mark.asyncio
    async def test_closed_while_waiting(self, transport):
        client = await Client.from_transport(transport)
        with pytest.raises(ConnectionClosedError):
            await client.connect_slot("Test Game", "Alice")

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, transport):
        client = await Client.from_transport(transport)
        with pytest.raises(ValueError):
            await client.connect_slot("Test Game", "  ")
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_slot_data_factory(self, transport, connected_msg):
        transport.push(connected_msg)
        client = await Client.from_transport(transport)
        connected = await client.connect_slot(
            "Test Game", "Alice", slot_data_factory=lambda data: data["goal"]
        )
        assert connected.slot_data == 1


# ── Helpers ───────────────────────────────────────────────────────

class TestHelpers:
    @pytest.mark.asyncio
    async def test_get_data_package_defaults_to_checksummed_games(self, transport, data_package_msg):
        transport.push(data_package_msg)
        client = await Client.from_transport(transport)
        package = await client.get_data_package()
        assert transport.sent_messages() == [{"cmd": "GetDataPackage", "games": ["Test Game"]}]
        assert client.data_package is package
        assert package.item_name("Test Game", 42) == "Sword"

    @pytest.mark.asyncio
    async def test_say(self, transport):
        client = await Client.from_transport(transport)
        await client.say("!hint Sword")
        assert transport.sent_messages() == [{"cmd": "Say", "text": "!hint Sword"}]
        with pytest.raises(ValueError):
            await client.say("   ")

    @pytest.mark.asyncio
    async def test_status_and_checks(self, transport):
        client = await Client.from_transport(transport)
        await client.location_checks([10, 11])
        await client.status_update(ClientStatus.CLIENT_GOAL)
        assert transport.sent_messages() == [
            {"cmd": "LocationChecks", "locations": [10, 11]},
            {"cmd": "StatusUpdate", "status": 30},
        ]

    @pytest.mark.asyncio
    async def test_death_link_uses_slot_name(self, transport, connected_msg):
        transport.push(connected_msg)
        client = await Client.from_transport(transport)
        await client.connect_slot("Test Game", "Alice")
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)

        await client.death_link(DeathLinkOptions(cause="Alice tripped.", time=when))

        sent = transport.sent_messages()[-1]
        assert sent == {
            "cmd": "Bounce",
            "tags": ["DeathLink"],
            "data": {"time": when.timestamp(), "source": "Alice", "cause": "Alice tripped."},
        }

    @pytest.mark.asyncio
    async def test_death_link_needs_source(self, transport):
        client = await Client.from_transport(transport)
        with pytest.raises(ValueError):
            await client.death_link()

    @pytest.mark.asyncio
    async def test_apply_room_update(self, transport, connected_msg):
        transport.push(connected_msg)
        client = await Client.from_transport(transport)
        await client.connect_slot("Test Game", "Alice")

        client.apply_room_update(RoomUpdate(hint_cost=3, checked_locations=[11]))

        assert client.room_info.hint_cost == 3
        assert client.connected.checked_locations == [12, 11]
        assert client.connected.missing_locations == [10]

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, transport):
        async with await Client.from_transport(transport) as client:
            assert client.room_info is not None
        assert transport.closed


# ── Split ─────────────────────────────────────────────────────────

class TestSplit:
    @pytest.mark.asyncio
    async def test_halves_share_the_connection(self, transport, connected_msg):
        transport.push(connected_msg, _print("after join"))
        client = await Client.from_transport(transport)
        await client.connect_slot("Test Game", "Alice")

        sender, receiver = client.split()

        await sender.say("hi")
        assert transport.sent_messages()[-1] == {"cmd": "Say", "text": "hi"}
        assert await receiver.receive() == Print(text="after join")
        assert receiver.connected.slot == 1
        assert sender.room_info is receiver.room_info

    @pytest.mark.asyncio
    async def test_halves_have_no_request_reply_operations(self, transport):
        client = await Client.from_transport(transport)
        sender, receiver = client.split()
        for name in ("get", "set", "sync", "location_scouts", "get_data_package", "connect_slot"):
            assert not hasattr(sender, name)
            assert not hasattr(receiver, name)
        assert not hasattr(receiver, "say")
        assert not hasattr(sender, "receive")

    @pytest.mark.asyncio
    async def test_client_unusable_after_split(self, transport):
        client = await Client.from_transport(transport)
        client.split()
        with pytest.raises(RuntimeError):
            await client.receive()
        with pytest.raises(RuntimeError):
            await client.say("hi")

    @pytest.mark.asyncio
    async def test_sender_close_ends_receiver_stream(self, transport):
        transport.push(_print("late"))
        client = await Client.from_transport(transport)
        sender, receiver = client.split()
        await sender.close()
        assert await receiver.receive() is None
