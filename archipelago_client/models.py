"""Shared value types and wire helpers for Archipelago messages."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from .constants import K_CMD, NETWORK_VERSION, VERSION_CLASS, NetworkItemFlags, SlotType


def wire_field(*, wire: str | None = None, omit_none: bool = False, skip: bool = False, **kwargs):
    """Declare a dataclass field with its wire options.

    Args:
        wire: Key used on the wire when it differs from the attribute name
        omit_none: Leave the key out entirely when the value is None
        skip: Never put the field on the wire
        **kwargs: Passed through to dataclasses.field

    Returns:
        A dataclasses.Field
    """
    metadata = {"wire": wire, "omit_none": omit_none, "skip": skip}
    return dataclasses.field(metadata=metadata, **kwargs)


def to_wire(value: Any) -> Any:
    """Convert a Python value into its JSON-compatible wire form."""
    if value is None or isinstance(value, (str, bool, float)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        return value.timestamp()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {k if isinstance(k, str) else str(k): to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_wire(v) for v in value]
    return value


def fields_to_dict(obj: Any) -> dict[str, Any]:
    """Serialize the dataclass fields of obj using their wire options."""
    out: dict[str, Any] = {}
    for f in dataclasses.fields(obj):
        if f.metadata.get("skip"):
            continue
        value = getattr(obj, f.name)
        if value is None and f.metadata.get("omit_none"):
            continue
        out[f.metadata.get("wire") or f.name] = to_wire(value)
    return out


# ============================================================================
# Field validation
# ============================================================================

_MISSING = object()


def _type_name(kind: type | tuple[type, ...]) -> str:
    if isinstance(kind, tuple):
        return " or ".join(k.__name__ for k in kind)
    return kind.__name__


def expect(value: Any, kind: type | tuple[type, ...], what: str) -> Any:
    """Check that value has the given JSON type.

    Raises:
        TypeError: If value does not match; booleans never count as numbers
    """
    kinds = kind if isinstance(kind, tuple) else (kind,)
    if isinstance(value, bool) and bool not in kinds:
        raise TypeError(f"{what} must be {_type_name(kind)}, got bool")
    if not isinstance(value, kinds):
        raise TypeError(f"{what} must be {_type_name(kind)}, got {type(value).__name__}")
    return value


def require(data: Mapping[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    """Return a required field of a decoded object.

    Raises:
        ValueError: If the field is missing
        TypeError: If the field has the wrong type
    """
    value = data.get(key, _MISSING)
    if value is _MISSING:
        raise ValueError(f"missing required field '{key}'")
    return expect(value, kind, f"field '{key}'")


def optional(
    data: Mapping[str, Any], key: str, kind: type | tuple[type, ...], default: Any = None
) -> Any:
    """Return an optional field, treating null like an absent key."""
    value = data.get(key)
    if value is None:
        return default
    return expect(value, kind, f"field '{key}'")


def int_list(values: Any, what: str) -> list[int]:
    expect(values, list, what)
    return [expect(v, int, f"element of {what}") for v in values]


def str_list(values: Any, what: str) -> list[str]:
    expect(values, list, what)
    return [expect(v, str, f"element of {what}") for v in values]


def object_list(values: Any, what: str) -> list[dict[str, Any]]:
    expect(values, list, what)
    return [expect(v, dict, f"element of {what}") for v in values]


def int_keyed(values: Any, what: str) -> dict[int, Any]:
    """Convert a JSON object keyed by decimal strings into an int-keyed dict."""
    expect(values, dict, what)
    out: dict[int, Any] = {}
    for key, value in values.items():
        try:
            out[int(key)] = value
        except ValueError as e:
            raise ValueError(f"{what} key {key!r} is not an integer") from e
    return out


# ============================================================================
# Message base classes
# ============================================================================


class Message:
    """Base for every message of either alphabet."""

    cmd: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        return {K_CMD: self.cmd, **fields_to_dict(self)}


class ClientMessage(Message):
    """A message sent from the client to the server."""

    pass


class ServerMessage(Message):
    """A message sent from the server to the client."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerMessage:
        raise NotImplementedError


# ============================================================================
# Value types
# ============================================================================


@dataclass(frozen=True)
class NetworkVersion:
    major: int
    minor: int
    build: int
    class_: str = wire_field(wire="class", default=VERSION_CLASS)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.build}"

    def to_dict(self) -> dict[str, Any]:
        return fields_to_dict(self)

    @classmethod
    def from_dict(cls, data: Any) -> NetworkVersion:
        expect(data, dict, "version")
        return cls(
            major=require(data, "major", int),
            minor=require(data, "minor", int),
            build=require(data, "build", int),
            class_=optional(data, "class", str, VERSION_CLASS),
        )


def network_version() -> NetworkVersion:
    """Return the protocol version this client announces."""
    major, minor, build = NETWORK_VERSION
    return NetworkVersion(major, minor, build)


@dataclass(frozen=True)
class NetworkPlayer:
    team: int
    slot: int
    alias: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return fields_to_dict(self)

    @classmethod
    def from_dict(cls, data: Any) -> NetworkPlayer:
        expect(data, dict, "player")
        return cls(
            team=require(data, "team", int),
            slot=require(data, "slot", int),
            alias=require(data, "alias", str),
            name=require(data, "name", str),
        )


@dataclass(frozen=True)
class NetworkItem:
    item: int
    location: int
    player: int
    flags: NetworkItemFlags = NetworkItemFlags.NONE

    def to_dict(self) -> dict[str, Any]:
        return fields_to_dict(self)

    @classmethod
    def from_dict(cls, data: Any) -> NetworkItem:
        expect(data, dict, "item")
        return cls(
            item=require(data, "item", int),
            location=require(data, "location", int),
            player=require(data, "player", int),
            flags=NetworkItemFlags(optional(data, "flags", int, 0)),
        )


@dataclass(frozen=True)
class NetworkSlot:
    name: str
    game: str
    type: SlotType
    group_members: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return fields_to_dict(self)

    @classmethod
    def from_dict(cls, data: Any) -> NetworkSlot:
        expect(data, dict, "slot info")
        return cls(
            name=require(data, "name", str),
            game=require(data, "game", str),
            type=SlotType(require(data, "type", int)),
            group_members=tuple(int_list(data.get("group_members", []), "group_members")),
        )
