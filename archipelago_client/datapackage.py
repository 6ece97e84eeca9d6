"""Data package tables with lazily derived id-to-name indexes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from .models import expect, require

logger = logging.getLogger(__name__)


def _name_table(values: Any, what: str) -> dict[str, int]:
    expect(values, dict, what)
    for name, ident in values.items():
        expect(ident, int, f"{what}[{name!r}]")
    return dict(values)


class GameData:
    """Item and location name tables of one game.

    The forward maps are read-only once constructed. The inverse maps are
    built on first request and the same mapping object is returned on every
    later call.
    """

    def __init__(
        self,
        item_name_to_id: Mapping[str, int],
        location_name_to_id: Mapping[str, int],
        checksum: str = "",
    ) -> None:
        self._item_name_to_id = MappingProxyType(dict(item_name_to_id))
        self._location_name_to_id = MappingProxyType(dict(location_name_to_id))
        self._checksum = checksum

        self._lock = threading.Lock()
        self._item_id_to_name: Mapping[int, str] | None = None
        self._location_id_to_name: Mapping[int, str] | None = None

    @property
    def item_name_to_id(self) -> Mapping[str, int]:
        return self._item_name_to_id

    @property
    def location_name_to_id(self) -> Mapping[str, int]:
        return self._location_name_to_id

    @property
    def checksum(self) -> str:
        return self._checksum

    def item_id_to_name(self) -> Mapping[int, str]:
        """Return the item id to name index, building it on first use."""
        table = self._item_id_to_name
        if table is None:
            with self._lock:
                if self._item_id_to_name is None:
                    self._item_id_to_name = _invert(self._item_name_to_id, "item")
                table = self._item_id_to_name
        return table

    def location_id_to_name(self) -> Mapping[int, str]:
        """Return the location id to name index, building it on first use."""
        table = self._location_id_to_name
        if table is None:
            with self._lock:
                if self._location_id_to_name is None:
                    self._location_id_to_name = _invert(self._location_name_to_id, "location")
                table = self._location_id_to_name
        return table

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_name_to_id": dict(self._item_name_to_id),
            "location_name_to_id": dict(self._location_name_to_id),
            "checksum": self._checksum,
        }

    @classmethod
    def from_dict(cls, data: Any) -> GameData:
        expect(data, dict, "game data")
        checksum = data.get("checksum", "")
        expect(checksum, str, "field 'checksum'")
        return cls(
            item_name_to_id=_name_table(
                require(data, "item_name_to_id", dict), "item_name_to_id"
            ),
            location_name_to_id=_name_table(
                require(data, "location_name_to_id", dict), "location_name_to_id"
            ),
            checksum=checksum,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GameData):
            return NotImplemented
        return (
            self._item_name_to_id == other._item_name_to_id
            and self._location_name_to_id == other._location_name_to_id
            and self._checksum == other._checksum
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"GameData(items={len(self._item_name_to_id)}, "
            f"locations={len(self._location_name_to_id)}, checksum={self._checksum!r})"
        )


def _invert(forward: Mapping[str, int], kind: str) -> Mapping[int, str]:
    inverse: dict[int, str] = {}
    for name, ident in forward.items():
        if ident in inverse:
            logger.debug("Duplicate %s id %d (%r and %r)", kind, ident, inverse[ident], name)
        inverse[ident] = name
    return MappingProxyType(inverse)


class DataPackageObject:
    """Mapping of game name to its GameData."""

    def __init__(self, games: Mapping[str, GameData] | None = None) -> None:
        self.games: dict[str, GameData] = dict(games or {})

    def game(self, name: str) -> GameData | None:
        return self.games.get(name)

    def item_name(self, game: str, item_id: int) -> str | None:
        data = self.games.get(game)
        if data is None:
            return None
        return data.item_id_to_name().get(item_id)

    def location_name(self, game: str, location_id: int) -> str | None:
        data = self.games.get(game)
        if data is None:
            return None
        return data.location_id_to_name().get(location_id)

    def to_dict(self) -> dict[str, Any]:
        return {"games": {name: data.to_dict() for name, data in self.games.items()}}

    @classmethod
    def from_dict(cls, data: Any) -> DataPackageObject:
        expect(data, dict, "data package")
        games = require(data, "games", dict)
        return cls({name: GameData.from_dict(game) for name, game in games.items()})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataPackageObject):
            return NotImplemented
        return self.games == other.games

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"DataPackageObject(games={sorted(self.games)!r})"
