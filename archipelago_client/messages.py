"""Client and server message alphabets of the Archipelago protocol.

Every message is a dataclass whose class attribute ``cmd`` is the value of
the wire discriminator. Client messages only need to encode; server messages
also decode through ``from_dict``, which raises TypeError or ValueError on
malformed input (the codec turns those into MalformedMessageError).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .bounce import Bounce, Bounced, DeathLink
from .constants import (
    CMD_CONNECT,
    CMD_CONNECT_UPDATE,
    CMD_CONNECTED,
    CMD_CONNECTION_REFUSED,
    CMD_DATA_PACKAGE,
    CMD_GET,
    CMD_GET_DATA_PACKAGE,
    CMD_INVALID_PACKET,
    CMD_LOCATION_CHECKS,
    CMD_LOCATION_INFO,
    CMD_LOCATION_SCOUTS,
    CMD_PRINT,
    CMD_RECEIVED_ITEMS,
    CMD_RETRIEVED,
    CMD_ROOM_INFO,
    CMD_ROOM_UPDATE,
    CMD_SAY,
    CMD_SET,
    CMD_SET_NOTIFY,
    CMD_SET_REPLY,
    CMD_STATUS_UPDATE,
    CMD_SYNC,
    CMD_UPDATE_HINT,
    DATA_STORAGE_OPERATIONS,
    K_CMD,
    VALUELESS_OPERATIONS,
    ClientStatus,
    HintStatus,
    ItemsHandlingFlags,
    Permission,
    normalize_items_handling,
)
from .datapackage import DataPackageObject
from .models import (
    ClientMessage,
    NetworkItem,
    NetworkPlayer,
    NetworkSlot,
    NetworkVersion,
    ServerMessage,
    expect,
    fields_to_dict,
    int_keyed,
    int_list,
    network_version,
    object_list,
    optional,
    require,
    str_list,
    to_wire,
    wire_field,
)
from .rich_message import RichPrint

__all__ = [
    "Bounce",
    "Bounced",
    "CLIENT_MESSAGE_TYPES",
    "Connect",
    "ConnectUpdate",
    "Connected",
    "ConnectionRefused",
    "DataPackage",
    "DataStorageOperation",
    "DeathLink",
    "Get",
    "GetDataPackage",
    "InvalidPacket",
    "LocationChecks",
    "LocationInfo",
    "LocationScouts",
    "Print",
    "ReceivedItems",
    "Retrieved",
    "RichPrint",
    "RoomInfo",
    "RoomUpdate",
    "SERVER_MESSAGE_TYPES",
    "Say",
    "Set",
    "SetNotify",
    "SetReply",
    "StatusUpdate",
    "Sync",
    "UpdateHint",
]


def _permissions(values: Any) -> dict[str, Permission]:
    expect(values, dict, "field 'permissions'")
    return {name: Permission(expect(v, int, f"permission '{name}'")) for name, v in values.items()}


def _players(values: Any) -> list[NetworkPlayer]:
    return [NetworkPlayer.from_dict(p) for p in object_list(values, "players")]


def _items(values: Any, what: str) -> list[NetworkItem]:
    return [NetworkItem.from_dict(i) for i in object_list(values, what)]


# ============================================================================
# Client -> Server
# ============================================================================


@dataclass
class Connect(ClientMessage):
    """Join a slot. ``items_handling`` is normalized when encoded."""

    cmd: ClassVar[str] = CMD_CONNECT

    game: str
    name: str
    password: str | None = None
    uuid: str = ""
    version: NetworkVersion = field(default_factory=network_version)
    items_handling: ItemsHandlingFlags = ItemsHandlingFlags.ALL
    tags: list[str] = field(default_factory=list)
    slot_data: bool = True

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["items_handling"] = int(normalize_items_handling(self.items_handling))
        return out


@dataclass
class ConnectUpdate(ClientMessage):
    cmd: ClassVar[str] = CMD_CONNECT_UPDATE

    items_handling: ItemsHandlingFlags = ItemsHandlingFlags.ALL
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["items_handling"] = int(normalize_items_handling(self.items_handling))
        return out


@dataclass
class Sync(ClientMessage):
    cmd: ClassVar[str] = CMD_SYNC


@dataclass
class LocationChecks(ClientMessage):
    cmd: ClassVar[str] = CMD_LOCATION_CHECKS

    locations: list[int] = field(default_factory=list)


@dataclass
class LocationScouts(ClientMessage):
    """Ask what is placed at locations; create_as_hint 1 hints, 2 hints once."""

    cmd: ClassVar[str] = CMD_LOCATION_SCOUTS

    locations: list[int] = field(default_factory=list)
    create_as_hint: int = 0


@dataclass
class UpdateHint(ClientMessage):
    cmd: ClassVar[str] = CMD_UPDATE_HINT

    player: int
    location: int
    status: HintStatus | None = wire_field(default=None, omit_none=True)


@dataclass
class StatusUpdate(ClientMessage):
    cmd: ClassVar[str] = CMD_STATUS_UPDATE

    status: ClientStatus


@dataclass
class Say(ClientMessage):
    cmd: ClassVar[str] = CMD_SAY

    text: str


@dataclass
class GetDataPackage(ClientMessage):
    cmd: ClassVar[str] = CMD_GET_DATA_PACKAGE

    games: list[str] | None = wire_field(default=None, omit_none=True)


@dataclass
class Get(ClientMessage):
    cmd: ClassVar[str] = CMD_GET

    keys: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DataStorageOperation:
    """One step applied by the server to a data storage value."""

    operation: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.operation not in DATA_STORAGE_OPERATIONS:
            raise ValueError(f"unknown data storage operation '{self.operation}'")

    def to_dict(self) -> dict[str, Any]:
        if self.operation in VALUELESS_OPERATIONS and self.value is None:
            return {"operation": self.operation}
        return {"operation": self.operation, "value": to_wire(self.value)}


@dataclass
class Set(ClientMessage):
    cmd: ClassVar[str] = CMD_SET

    key: str
    default: Any = None
    want_reply: bool = False
    operations: list[DataStorageOperation] = field(default_factory=list)


@dataclass
class SetNotify(ClientMessage):
    cmd: ClassVar[str] = CMD_SET_NOTIFY

    keys: list[str] = field(default_factory=list)


CLIENT_MESSAGE_TYPES: dict[str, type[ClientMessage]] = {
    cls.cmd: cls
    for cls in (
        Connect,
        ConnectUpdate,
        Sync,
        LocationChecks,
        LocationScouts,
        UpdateHint,
        StatusUpdate,
        Say,
        GetDataPackage,
        Bounce,
        Get,
        Set,
        SetNotify,
    )
}


# ============================================================================
# Server -> Client
# ============================================================================


@dataclass
class RoomInfo(ServerMessage):
    """Room capabilities, sent once when the socket opens."""

    cmd: ClassVar[str] = CMD_ROOM_INFO

    version: NetworkVersion
    tags: list[str]
    password_required: bool = wire_field(wire="password")
    permissions: dict[str, Permission] = field(default_factory=dict)
    hint_cost: int = 0
    location_check_points: int = 0
    games: list[str] = field(default_factory=list)
    seed_name: str = ""
    time: float = 0.0
    generator_version: NetworkVersion | None = wire_field(default=None, omit_none=True)
    datapackage_checksums: dict[str, str] = field(default_factory=dict)
    datapackage_versions: dict[str, int] = field(default_factory=dict)

    def apply_update(self, update: RoomUpdate) -> RoomInfo:
        """Return a copy with every field the update carries replaced."""
        changes = {
            name: getattr(update, name)
            for name in _ROOM_INFO_UPDATABLE
            if getattr(update, name) is not None
        }
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoomInfo:
        generator = data.get("generator_version")
        checksums = optional(data, "datapackage_checksums", dict, {})
        versions = optional(data, "datapackage_versions", dict, {})
        return cls(
            version=NetworkVersion.from_dict(require(data, "version", dict)),
            tags=str_list(require(data, "tags", list), "tags"),
            password_required=require(data, "password", bool),
            permissions=_permissions(require(data, "permissions", dict)),
            hint_cost=require(data, "hint_cost", int),
            location_check_points=require(data, "location_check_points", int),
            games=str_list(require(data, "games", list), "games"),
            seed_name=require(data, "seed_name", str),
            time=float(require(data, "time", (int, float))),
            generator_version=None if generator is None else NetworkVersion.from_dict(generator),
            datapackage_checksums={
                k: expect(v, str, f"checksum of '{k}'") for k, v in checksums.items()
            },
            datapackage_versions={
                k: expect(v, int, f"datapackage version of '{k}'") for k, v in versions.items()
            },
        )


@dataclass
class ConnectionRefused(ServerMessage):
    cmd: ClassVar[str] = CMD_CONNECTION_REFUSED

    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConnectionRefused:
        return cls(errors=str_list(optional(data, "errors", list, []), "errors"))


@dataclass
class Connected(ServerMessage):
    """Slot join acceptance.

    ``slot_data`` is opaque here; Client.connect_slot can convert it with a
    caller supplied factory. ``slot_info`` is keyed by slot number.
    """

    cmd: ClassVar[str] = CMD_CONNECTED

    team: int
    slot: int
    players: list[NetworkPlayer] = field(default_factory=list)
    missing_locations: list[int] = field(default_factory=list)
    checked_locations: list[int] = field(default_factory=list)
    slot_data: Any = None
    slot_info: dict[int, NetworkSlot] = field(default_factory=dict)
    hint_points: int = 0

    def player(self, slot: int, team: int | None = None) -> NetworkPlayer | None:
        team = self.team if team is None else team
        for player in self.players:
            if player.slot == slot and player.team == team:
                return player
        return None

    def apply_update(self, update: RoomUpdate) -> Connected:
        """Return a copy with the roster and location fields of the update applied.

        checked_locations in a RoomUpdate are newly checked ones, so they are
        added to the known set and removed from the missing set.
        """
        changes: dict[str, Any] = {}
        if update.players is not None:
            changes["players"] = list(update.players)
        if update.hint_points is not None:
            changes["hint_points"] = update.hint_points
        missing = self.missing_locations
        if update.missing_locations is not None:
            missing = list(update.missing_locations)
        if update.checked_locations is not None:
            known = set(self.checked_locations)
            newly = [loc for loc in update.checked_locations if loc not in known]
            changes["checked_locations"] = self.checked_locations + newly
            checked = set(update.checked_locations)
            missing = [loc for loc in missing if loc not in checked]
        if missing is not self.missing_locations:
            changes["missing_locations"] = missing
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Connected:
        slot_info = int_keyed(require(data, "slot_info", dict), "slot_info")
        return cls(
            team=require(data, "team", int),
            slot=require(data, "slot", int),
            players=_players(require(data, "players", list)),
            missing_locations=int_list(require(data, "missing_locations", list), "missing_locations"),
            checked_locations=int_list(require(data, "checked_locations", list), "checked_locations"),
            slot_data=data.get("slot_data"),
            slot_info={slot: NetworkSlot.from_dict(info) for slot, info in slot_info.items()},
            hint_points=optional(data, "hint_points", int, 0),
        )


@dataclass
class ReceivedItems(ServerMessage):
    cmd: ClassVar[str] = CMD_RECEIVED_ITEMS

    index: int
    items: list[NetworkItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReceivedItems:
        return cls(
            index=require(data, "index", int),
            items=_items(require(data, "items", list), "items"),
        )


@dataclass
class LocationInfo(ServerMessage):
    cmd: ClassVar[str] = CMD_LOCATION_INFO

    locations: list[NetworkItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocationInfo:
        return cls(locations=_items(require(data, "locations", list), "locations"))


@dataclass
class RoomUpdate(ServerMessage):
    """Partial RoomInfo plus roster changes; absent fields are None."""

    cmd: ClassVar[str] = CMD_ROOM_UPDATE

    version: NetworkVersion | None = wire_field(default=None, omit_none=True)
    tags: list[str] | None = wire_field(default=None, omit_none=True)
    password_required: bool | None = wire_field(wire="password", default=None, omit_none=True)
    permissions: dict[str, Permission] | None = wire_field(default=None, omit_none=True)
    hint_cost: int | None = wire_field(default=None, omit_none=True)
    location_check_points: int | None = wire_field(default=None, omit_none=True)
    games: list[str] | None = wire_field(default=None, omit_none=True)
    seed_name: str | None = wire_field(default=None, omit_none=True)
    time: float | None = wire_field(default=None, omit_none=True)
    datapackage_checksums: dict[str, str] | None = wire_field(default=None, omit_none=True)
    hint_points: int | None = wire_field(default=None, omit_none=True)
    players: list[NetworkPlayer] | None = wire_field(default=None, omit_none=True)
    checked_locations: list[int] | None = wire_field(default=None, omit_none=True)
    missing_locations: list[int] | None = wire_field(default=None, omit_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoomUpdate:
        version = data.get("version")
        permissions = data.get("permissions")
        tags = data.get("tags")
        games = data.get("games")
        time = optional(data, "time", (int, float))
        checksums = optional(data, "datapackage_checksums", dict)
        players = data.get("players")
        checked = data.get("checked_locations")
        missing = data.get("missing_locations")
        return cls(
            version=None if version is None else NetworkVersion.from_dict(version),
            tags=None if tags is None else str_list(tags, "tags"),
            password_required=optional(data, "password", bool),
            permissions=None if permissions is None else _permissions(permissions),
            hint_cost=optional(data, "hint_cost", int),
            location_check_points=optional(data, "location_check_points", int),
            games=None if games is None else str_list(games, "games"),
            seed_name=optional(data, "seed_name", str),
            time=None if time is None else float(time),
            datapackage_checksums=None
            if checksums is None
            else {k: expect(v, str, f"checksum of '{k}'") for k, v in checksums.items()},
            hint_points=optional(data, "hint_points", int),
            players=None if players is None else _players(players),
            checked_locations=None if checked is None else int_list(checked, "checked_locations"),
            missing_locations=None if missing is None else int_list(missing, "missing_locations"),
        )


_ROOM_INFO_UPDATABLE = (
    "version",
    "tags",
    "password_required",
    "permissions",
    "hint_cost",
    "location_check_points",
    "games",
    "seed_name",
    "time",
    "datapackage_checksums",
)


@dataclass
class Print(ServerMessage):
    cmd: ClassVar[str] = CMD_PRINT

    text: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Print:
        return cls(text=require(data, "text", str))


@dataclass
class DataPackage(ServerMessage):
    cmd: ClassVar[str] = CMD_DATA_PACKAGE

    data: DataPackageObject = field(default_factory=DataPackageObject)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataPackage:
        return cls(data=DataPackageObject.from_dict(require(data, "data", dict)))


@dataclass
class InvalidPacket(ServerMessage):
    """The server could not handle a packet; ``type`` is "cmd" or "arguments"."""

    cmd: ClassVar[str] = CMD_INVALID_PACKET

    type: str
    text: str
    original_cmd: str | None = wire_field(default=None, omit_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InvalidPacket:
        return cls(
            type=require(data, "type", str),
            text=require(data, "text", str),
            original_cmd=optional(data, "original_cmd", str),
        )


@dataclass
class Retrieved(ServerMessage):
    cmd: ClassVar[str] = CMD_RETRIEVED

    keys: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Retrieved:
        return cls(keys=dict(require(data, "keys", dict)))


_NO_VALUE = object()


@dataclass
class SetReply(ServerMessage):
    """Result of a Set. ``original_value`` is absent for keys prefixed ``_read``."""

    cmd: ClassVar[str] = CMD_SET_REPLY

    key: str
    value: Any = None
    original_value: Any = None
    has_original_value: bool = wire_field(default=False, skip=True)

    def to_dict(self) -> dict[str, Any]:
        out = fields_to_dict(self)
        if not self.has_original_value:
            out.pop("original_value")
        return {K_CMD: self.cmd, **out}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SetReply:
        if "value" not in data:
            raise ValueError("missing required field 'value'")
        original = data.get("original_value", _NO_VALUE)
        return cls(
            key=require(data, "key", str),
            value=data["value"],
            original_value=None if original is _NO_VALUE else original,
            has_original_value=original is not _NO_VALUE,
        )


SERVER_MESSAGE_TYPES: dict[str, type[ServerMessage]] = {
    cls.cmd: cls
    for cls in (
        RoomInfo,
        ConnectionRefused,
        Connected,
        ReceivedItems,
        LocationInfo,
        RoomUpdate,
        Print,
        RichPrint,
        DataPackage,
        Bounced,
        InvalidPacket,
        Retrieved,
        SetReply,
    )
}
