"""Bounce and Bounced messages, including the DeathLink specialization.

A Bounced payload has no discriminator field of its own. Whether the payload
is a DeathLink event is decided by the envelope's tag list, so decoding runs
in two passes: the generic envelope first, then the payload again against
the DeathLink shape when the "DeathLink" tag is present.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from .constants import CMD_BOUNCE, CMD_BOUNCED, K_CMD, TAG_DEATH_LINK
from .models import ClientMessage, ServerMessage, expect, int_list, optional, require, str_list, to_wire


@dataclass(frozen=True)
class DeathLink:
    """A shared death event.

    Attributes:
        source: Name of the player who died, a slot name or an in-game name
        time: When the death happened
        cause: Optional text describing the death, including the player name
    """

    source: str
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cause: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"time": self.time.timestamp(), "source": self.source}
        if self.cause is not None:
            out["cause"] = self.cause
        return out

    @classmethod
    def from_dict(cls, data: Any) -> DeathLink:
        expect(data, dict, "DeathLink data")
        timestamp = require(data, "time", (int, float))
        try:
            when = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"DeathLink time out of range: {timestamp}") from e
        return cls(
            source=require(data, "source", str),
            time=when,
            cause=optional(data, "cause", str),
        )


def _bounce_dict(cmd: str, games: Any, slots: Any, tags: list[str], data: Any) -> dict[str, Any]:
    out: dict[str, Any] = {K_CMD: cmd}
    if games is not None:
        out["games"] = list(games)
    if slots is not None:
        out["slots"] = list(slots)
    if isinstance(data, DeathLink):
        out["tags"] = list(tags) if TAG_DEATH_LINK in tags else [*tags, TAG_DEATH_LINK]
    elif tags:
        out["tags"] = list(tags)
    out["data"] = to_wire(data)
    return out


@dataclass
class Bounce(ClientMessage):
    """Ask the server to forward data to every matching game, slot or tag.

    A DeathLink payload always goes out tagged "DeathLink", whether or not
    the caller listed the tag.
    """

    cmd: ClassVar[str] = CMD_BOUNCE

    data: DeathLink | Any = None
    games: list[str] | None = None
    slots: list[int] | None = None
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _bounce_dict(self.cmd, self.games, self.slots, self.tags, self.data)


@dataclass
class Bounced(ServerMessage):
    """Data forwarded by the server on behalf of another client."""

    cmd: ClassVar[str] = CMD_BOUNCED

    data: DeathLink | Any = None
    games: list[str] | None = None
    slots: list[int] | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def death_link(self) -> DeathLink | None:
        return self.data if isinstance(self.data, DeathLink) else None

    def to_dict(self) -> dict[str, Any]:
        return _bounce_dict(self.cmd, self.games, self.slots, self.tags, self.data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bounced:
        games = data.get("games")
        slots = data.get("slots")
        tags = data.get("tags")
        envelope = cls(
            data=data.get("data"),
            games=None if games is None else str_list(games, "games"),
            slots=None if slots is None else int_list(slots, "slots"),
            tags=[] if tags is None else str_list(tags, "tags"),
        )
        if TAG_DEATH_LINK in envelope.tags:
            envelope.data = DeathLink.from_dict(envelope.data)
        return envelope
