"""Archipelago network protocol constants (commands, tags and enumerations).

Archipelago Network Protocol
============================

This module defines the constants shared by every message of the Archipelago
multiworld protocol. Each websocket text frame carries a JSON array of
objects, and every object names its kind in the ``cmd`` field.

Protocol Version Compatibility:
    - The client announces NETWORK_VERSION in its Connect message
    - The server's own version is exposed through RoomInfo.version only
    - Message shapes do not change with the advertised server version
"""

from __future__ import annotations

from enum import Enum, IntEnum, IntFlag

# Version announced to the server in Connect
NETWORK_VERSION = (0, 6, 0)
VERSION_CLASS = "Version"

# Discriminator field for both alphabets
K_CMD = "cmd"
# Discriminator field for PrintJSON kinds and rich-text fragments
K_TYPE = "type"

# ============================================================================
# Client -> Server Commands
# ============================================================================

CMD_CONNECT = "Connect"  # Join a slot; answered by Connected or ConnectionRefused
CMD_CONNECT_UPDATE = "ConnectUpdate"  # Change items_handling/tags after joining
CMD_SYNC = "Sync"  # Answered by ReceivedItems (index 0, everything)
CMD_LOCATION_CHECKS = "LocationChecks"  # Report checked locations
CMD_LOCATION_SCOUTS = "LocationScouts"  # Answered by LocationInfo
CMD_UPDATE_HINT = "UpdateHint"  # Change the status of an existing hint
CMD_STATUS_UPDATE = "StatusUpdate"  # Report ClientStatus
CMD_SAY = "Say"  # Chat text, also used for server commands
CMD_GET_DATA_PACKAGE = "GetDataPackage"  # Answered by DataPackage
CMD_BOUNCE = "Bounce"  # Forwarded by the server as Bounced
CMD_GET = "Get"  # Answered by Retrieved
CMD_SET = "Set"  # Answered by SetReply when want_reply is set
CMD_SET_NOTIFY = "SetNotify"  # Subscribe to SetReply for keys

# ============================================================================
# Server -> Client Commands
# ============================================================================

CMD_ROOM_INFO = "RoomInfo"  # Always the first message after the socket opens
CMD_CONNECTION_REFUSED = "ConnectionRefused"
CMD_CONNECTED = "Connected"
CMD_RECEIVED_ITEMS = "ReceivedItems"
CMD_LOCATION_INFO = "LocationInfo"
CMD_ROOM_UPDATE = "RoomUpdate"
CMD_PRINT = "Print"
CMD_PRINT_JSON = "PrintJSON"
CMD_DATA_PACKAGE = "DataPackage"
CMD_BOUNCED = "Bounced"
CMD_INVALID_PACKET = "InvalidPacket"
CMD_RETRIEVED = "Retrieved"
CMD_SET_REPLY = "SetReply"

# ============================================================================
# Well-known Tags
# ============================================================================

TAG_DEATH_LINK = "DeathLink"  # Bounce payload is a DeathLink event
TAG_AP = "AP"  # Regular game client
TAG_TEXT_ONLY = "TextOnly"  # Client that does not play a game
TAG_TRACKER = "Tracker"  # Client that only tracks

# ============================================================================
# Data Storage Operations (Set)
# ============================================================================

DATA_STORAGE_OPERATIONS = frozenset(
    {
        "replace",
        "default",
        "add",
        "mul",
        "pow",
        "mod",
        "floor",
        "ceil",
        "max",
        "min",
        "and",
        "or",
        "xor",
        "left_shift",
        "right_shift",
        "remove",
        "pop",
        "update",
    }
)
# Operations whose value is ignored by the server
VALUELESS_OPERATIONS = frozenset({"default", "floor", "ceil"})


class ItemsHandlingFlags(IntFlag):
    """Which items the server should send to this client."""

    NONE = 0
    OTHER_WORLDS = 0b001
    OWN_WORLD = 0b010
    STARTING_INVENTORY = 0b100
    ALL = 0b111


def normalize_items_handling(flags: int) -> ItemsHandlingFlags:
    """Return flags with OTHER_WORLDS implied by OWN_WORLD or STARTING_INVENTORY.

    Args:
        flags: Raw or already typed items handling bits

    Returns:
        Normalized ItemsHandlingFlags

    Raises:
        ValueError: If flags has bits outside ItemsHandlingFlags.ALL
    """
    value = int(flags)
    if value < 0 or value & ~int(ItemsHandlingFlags.ALL):
        raise ValueError(f"invalid items_handling bits: {value:#b}")
    result = ItemsHandlingFlags(value)
    if result & (ItemsHandlingFlags.OWN_WORLD | ItemsHandlingFlags.STARTING_INVENTORY):
        result |= ItemsHandlingFlags.OTHER_WORLDS
    return result


class NetworkItemFlags(IntFlag):
    """Classification bits of a NetworkItem."""

    NONE = 0
    PROGRESSION = 0b001  # Can unlock logical advancement
    USEFUL = 0b010  # Especially useful
    TRAP = 0b100  # A trap


class ClientStatus(IntEnum):
    CLIENT_UNKNOWN = 0
    CLIENT_CONNECTED = 5
    CLIENT_READY = 10
    CLIENT_PLAYING = 20
    CLIENT_GOAL = 30


class Permission(IntEnum):
    """Room permission for release/collect/remaining commands."""

    DISABLED = 0
    ENABLED = 1
    GOAL = 2
    AUTO = 6
    AUTO_ENABLED = 7


class SlotType(IntEnum):
    SPECTATOR = 0
    PLAYER = 1
    GROUP = 2


class HintStatus(IntEnum):
    HINT_FOUND = 0
    HINT_UNSPECIFIED = 1
    HINT_NO_PRIORITY = 10
    HINT_AVOID = 20
    HINT_PRIORITY = 30


class RichMessageColor(str, Enum):
    """Colour and markup names used by ``color`` rich-text fragments."""

    BOLD = "bold"
    UNDERLINE = "underline"
    BLACK = "black"
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    BLUE = "blue"
    MAGENTA = "magenta"
    CYAN = "cyan"
    WHITE = "white"
    BLACK_BG = "black_bg"
    RED_BG = "red_bg"
    GREEN_BG = "green_bg"
    YELLOW_BG = "yellow_bg"
    BLUE_BG = "blue_bg"
    MAGENTA_BG = "magenta_bg"
    CYAN_BG = "cyan_bg"
    WHITE_BG = "white_bg"
