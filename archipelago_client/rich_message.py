"""Rich-text prints (PrintJSON) and name resolution for their fragments.

When a RichPrint arrives from the server, fragments that refer to players,
items or locations by id have no names filled in. Call ``add_names`` with
the current Connected roster and a data package before displaying it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from .constants import CMD_PRINT_JSON, K_TYPE, NetworkItemFlags, RichMessageColor
from .models import (
    NetworkItem,
    ServerMessage,
    expect,
    object_list,
    optional,
    require,
    str_list,
    wire_field,
)

if TYPE_CHECKING:
    from .datapackage import DataPackageObject
    from .messages import Connected

logger = logging.getLogger(__name__)


def _parse_id(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    expect(value, str, "field 'text'")
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"id fragment text {value!r} is not an integer") from e


def _slot_game(connected: Connected, player: int) -> str | None:
    slot = connected.slot_info.get(player)
    return slot.game if slot is not None else None


class RichMessagePart:
    """One fragment of a RichPrint."""

    type: ClassVar[str | None] = None

    def add_name(self, connected: Connected, data_package: DataPackageObject | None) -> None:
        """Fill in the display name of an id fragment if it can be resolved."""
        return None

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass
class TextPart(RichMessagePart):
    """Plain text. Also stands in for fragments of an unknown or unparsable type."""

    text: str

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextPart:
        return cls(text=require(data, "text", str))


@dataclass
class PlayerIdPart(RichMessagePart):
    type: ClassVar[str | None] = "player_id"

    id: int
    name: str | None = None

    def add_name(self, connected: Connected, data_package: DataPackageObject | None) -> None:
        candidates = [p for p in connected.players if p.slot == self.id]
        for player in candidates:
            if player.team == connected.team:
                self.name = player.alias
                return
        if candidates:
            self.name = candidates[0].alias

    def __str__(self) -> str:
        return self.name if self.name is not None else f"<player {self.id}>"

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": str(self.id)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlayerIdPart:
        return cls(id=_parse_id(data.get("text")))


@dataclass
class PlayerNamePart(RichMessagePart):
    type: ClassVar[str | None] = "player_name"

    text: str

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlayerNamePart:
        return cls(text=require(data, "text", str))


@dataclass
class ItemIdPart(RichMessagePart):
    """An item referenced by id; ``player`` is the slot whose game owns it."""

    type: ClassVar[str | None] = "item_id"

    id: int
    player: int
    flags: NetworkItemFlags = NetworkItemFlags.NONE
    name: str | None = None

    def add_name(self, connected: Connected, data_package: DataPackageObject | None) -> None:
        if data_package is None:
            return
        game = _slot_game(connected, self.player)
        if game is None:
            return
        name = data_package.item_name(game, self.id)
        if name is not None:
            self.name = name

    def __str__(self) -> str:
        return self.name if self.name is not None else f"<item {self.player}:{self.id}>"

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": str(self.id), "player": self.player, "flags": int(self.flags)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemIdPart:
        return cls(
            id=_parse_id(data.get("text")),
            player=require(data, "player", int),
            flags=NetworkItemFlags(optional(data, "flags", int, 0)),
        )


@dataclass
class ItemNamePart(RichMessagePart):
    type: ClassVar[str | None] = "item_name"

    text: str
    player: int
    flags: NetworkItemFlags = NetworkItemFlags.NONE

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": self.text, "player": self.player, "flags": int(self.flags)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemNamePart:
        return cls(
            text=require(data, "text", str),
            player=require(data, "player", int),
            flags=NetworkItemFlags(optional(data, "flags", int, 0)),
        )


@dataclass
class LocationIdPart(RichMessagePart):
    type: ClassVar[str | None] = "location_id"

    id: int
    player: int
    name: str | None = None

    def add_name(self, connected: Connected, data_package: DataPackageObject | None) -> None:
        if data_package is None:
            return
        game = _slot_game(connected, self.player)
        if game is None:
            return
        name = data_package.location_name(game, self.id)
        if name is not None:
            self.name = name

    def __str__(self) -> str:
        return self.name if self.name is not None else f"<loc {self.player}:{self.id}>"

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": str(self.id), "player": self.player}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocationIdPart:
        return cls(id=_parse_id(data.get("text")), player=require(data, "player", int))


@dataclass
class LocationNamePart(RichMessagePart):
    type: ClassVar[str | None] = "location_name"

    text: str
    player: int

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": self.text, "player": self.player}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocationNamePart:
        return cls(text=require(data, "text", str), player=require(data, "player", int))


@dataclass
class EntranceNamePart(RichMessagePart):
    type: ClassVar[str | None] = "entrance_name"

    text: str

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntranceNamePart:
        return cls(text=require(data, "text", str))


@dataclass
class ColorPart(RichMessagePart):
    type: ClassVar[str | None] = "color"

    text: str
    color: RichMessageColor

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {K_TYPE: self.type, "text": self.text, "color": self.color.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ColorPart:
        return cls(text=require(data, "text", str), color=RichMessageColor(require(data, "color", str)))


PART_TYPES: dict[str, type[RichMessagePart]] = {
    "player_id": PlayerIdPart,
    "player_name": PlayerNamePart,
    "item_id": ItemIdPart,
    "item_name": ItemNamePart,
    "location_id": LocationIdPart,
    "location_name": LocationNamePart,
    "entrance_name": EntranceNamePart,
    "color": ColorPart,
}


def decode_part(data: dict[str, Any]) -> RichMessagePart:
    """Decode one fragment.

    Fragments of an unknown type, and fragments of a known type whose fields
    do not parse (a missing ``player``, an unknown colour, a non-numeric id),
    are kept as plain text.

    Raises:
        TypeError, ValueError: If the fragment has no string ``text``
    """
    part_type = data.get(K_TYPE)
    cls = PART_TYPES.get(part_type) if isinstance(part_type, str) else None
    if cls is None:
        if part_type not in (None, "text"):
            logger.debug("Treating rich fragment of type %r as text", part_type)
        return TextPart.from_dict(data)
    try:
        return cls.from_dict(data)  # type: ignore[attr-defined]
    except (TypeError, ValueError) as e:
        logger.debug("Treating malformed %s fragment as text: %s", part_type, e)
        return TextPart.from_dict(data)


# Extra fields each PrintJSON type must carry besides ``data``
PRINT_TYPE_FIELDS: dict[str, tuple[str, ...]] = {
    "ItemSend": ("receiving", "item"),
    "ItemCheat": ("receiving", "item", "team"),
    "Hint": ("receiving", "item", "found"),
    "Join": ("team", "slot", "tags"),
    "Part": ("team", "slot"),
    "Chat": ("team", "slot", "message"),
    "ServerChat": ("message",),
    "Tutorial": (),
    "TagsChanged": ("team", "slot", "tags"),
    "CommandResult": (),
    "AdminCommandResult": (),
    "Goal": ("team", "slot"),
    "Release": ("team", "slot"),
    "Collect": ("team", "slot"),
    "Countdown": ("countdown",),
}

_PRINT_FIELD_DECODERS = {
    "receiving": lambda v: expect(v, int, "field 'receiving'"),
    "item": NetworkItem.from_dict,
    "found": lambda v: expect(v, bool, "field 'found'"),
    "team": lambda v: expect(v, int, "field 'team'"),
    "slot": lambda v: expect(v, int, "field 'slot'"),
    "tags": lambda v: str_list(v, "tags"),
    "message": lambda v: expect(v, str, "field 'message'"),
    "countdown": lambda v: expect(v, int, "field 'countdown'"),
}


@dataclass
class RichPrint(ServerMessage):
    """A structured print made of typed fragments.

    ``type`` is None for prints of an absent or unrecognised kind, and for
    prints whose kind-specific fields are missing or invalid; those carry
    only their fragments.
    """

    cmd: ClassVar[str] = CMD_PRINT_JSON

    data: list[RichMessagePart] = field(default_factory=list)
    type: str | None = wire_field(default=None, omit_none=True)
    receiving: int | None = wire_field(default=None, omit_none=True)
    item: NetworkItem | None = wire_field(default=None, omit_none=True)
    found: bool | None = wire_field(default=None, omit_none=True)
    team: int | None = wire_field(default=None, omit_none=True)
    slot: int | None = wire_field(default=None, omit_none=True)
    tags: list[str] | None = wire_field(default=None, omit_none=True)
    message: str | None = wire_field(default=None, omit_none=True)
    countdown: int | None = wire_field(default=None, omit_none=True)

    @classmethod
    def message_of(cls, text: str) -> RichPrint:
        """Return an untyped print holding just the given text."""
        return cls(data=[TextPart(text)])

    def add_names(self, connected: Connected, data_package: DataPackageObject | None) -> None:
        """Resolve player, item and location names in every fragment.

        Item and location names for another slot's game are only found if
        that game was part of the fetched data package.
        """
        for part in self.data:
            part.add_name(connected, data_package)

    def __str__(self) -> str:
        return "".join(str(part) for part in self.data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RichPrint:
        parts = [decode_part(p) for p in object_list(require(data, "data", list), "data")]
        print_type = data.get(K_TYPE)
        required = PRINT_TYPE_FIELDS.get(print_type) if isinstance(print_type, str) else None
        if required is None:
            return cls(data=parts)

        values: dict[str, Any] = {}
        try:
            for name in required:
                if data.get(name) is None:
                    raise ValueError(f"missing required field '{name}'")
                values[name] = _PRINT_FIELD_DECODERS[name](data[name])
        except (TypeError, ValueError) as e:
            logger.debug("Treating %s print as untyped: %s", print_type, e)
            return cls(data=parts)
        return cls(data=parts, type=print_type, **values)
