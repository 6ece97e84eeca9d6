"""Archipelago client session built on an aiohttp websocket."""

from __future__ import annotations

import logging
import ssl
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

import aiohttp

from .bounce import Bounce, DeathLink
from .codec import decode, encode
from .constants import (
    CMD_CONNECT,
    CMD_GET,
    CMD_GET_DATA_PACKAGE,
    CMD_LOCATION_SCOUTS,
    CMD_SET,
    CMD_SYNC,
    ClientStatus,
    HintStatus,
    ItemsHandlingFlags,
    normalize_items_handling,
)
from .datapackage import DataPackageObject
from .errors import (
    ConnectionClosedError,
    IllegalResponseError,
    MalformedMessageError,
    SlotRefusedError,
)
from .messages import (
    Connect,
    Connected,
    ConnectionRefused,
    ConnectUpdate,
    DataPackage,
    DataStorageOperation,
    Get,
    GetDataPackage,
    InvalidPacket,
    LocationChecks,
    LocationInfo,
    LocationScouts,
    ReceivedItems,
    Retrieved,
    RoomInfo,
    RoomUpdate,
    Say,
    Set,
    SetNotify,
    SetReply,
    StatusUpdate,
    Sync,
    UpdateHint,
)
from .models import ClientMessage, NetworkVersion, ServerMessage, network_version
from .transport import WebSocketTransport, open_transport

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=ServerMessage)


@dataclass(frozen=True)
class ClientConfig:
    """Configuration for the Archipelago client."""

    uuid: str = ""
    version: NetworkVersion = field(default_factory=network_version)
    request_slot_data: bool = True
    max_message_size: int = 0
    heartbeat_s: float | None = None


@dataclass
class DeathLinkOptions:
    """Options for Client.death_link.

    Attributes:
        games: Games to broadcast to; all games when None
        slots: Slots to broadcast to; all slots when None
        time: When the death happened; the time of the call when None
        cause: Text describing the death, e.g. "Berserker was run over by a train."
        source: Name of the player who died; the joined slot name when None
    """

    games: list[str] | None = None
    slots: list[int] | None = None
    time: datetime | None = None
    cause: str | None = None
    source: str | None = None


async def _read_messages(transport: WebSocketTransport) -> list[ServerMessage] | None:
    """Read frames until one holds at least one message, or the socket closes."""
    while True:
        text = await transport.receive_text()
        if text is None:
            return None
        try:
            messages = decode(text)
        except MalformedMessageError as e:
            logger.error("Errored message (%s): %s", e.reason, text)
            raise
        if messages:
            logger.debug("Received %s", ", ".join(m.cmd for m in messages))
            return messages


class _Connection:
    _transport: WebSocketTransport | None

    def _live_transport(self) -> WebSocketTransport:
        if self._transport is None:
            raise RuntimeError("This client has been split; use its sender and receiver halves.")
        return self._transport


class _Sender(_Connection):
    """Write-side operations shared by Client and ClientSender."""

    _slot_name: str | None

    async def send(self, message: ClientMessage) -> None:
        """Send one message without waiting for any reply.

        Raises:
            EncodeError: If the message cannot be serialized
            ConnectionClosedError: If the connection is closed
            TransportError: If the write fails
        """
        transport = self._live_transport()
        payload = encode(message)
        logger.debug("Sending %s", message.cmd)
        await transport.send_text(payload)

    async def say(self, text: str) -> None:
        """Send chat text (or a server command such as "!hint") to the room.

        Raises:
            ValueError: If the text is empty
        """
        if not isinstance(text, str):
            raise ValueError(f"Message text must be a string (got {type(text).__name__})")
        if not text.strip():
            raise ValueError("Message text cannot be empty. Enter a message to send.")
        await self.send(Say(text=text))

    async def location_checks(self, locations: Iterable[int]) -> None:
        """Report locations the player has checked."""
        await self.send(LocationChecks(locations=list(locations)))

    async def status_update(self, status: ClientStatus) -> None:
        await self.send(StatusUpdate(status=ClientStatus(status)))

    async def connect_update(
        self, items_handling: int = ItemsHandlingFlags.ALL, tags: Iterable[str] = ()
    ) -> None:
        """Change items handling and tags of the joined slot."""
        await self.send(
            ConnectUpdate(items_handling=normalize_items_handling(items_handling), tags=list(tags))
        )

    async def update_hint(self, player: int, location: int, status: HintStatus | None = None) -> None:
        await self.send(UpdateHint(player=player, location=location, status=status))

    async def set_notify(self, keys: Iterable[str]) -> None:
        """Subscribe to SetReply notifications for data storage keys."""
        await self.send(SetNotify(keys=list(keys)))

    async def bounce(
        self,
        data: Any,
        *,
        games: Iterable[str] | None = None,
        slots: Iterable[int] | None = None,
        tags: Iterable[str] | None = None,
    ) -> None:
        """Have the server forward data to every game, slot or tag that matches."""
        await self.send(
            Bounce(
                data=data,
                games=None if games is None else list(games),
                slots=None if slots is None else list(slots),
                tags=list(tags or ()),
            )
        )

    async def death_link(self, options: DeathLinkOptions | None = None) -> None:
        """Broadcast a DeathLink event.

        Raises:
            ValueError: If no source is given and no slot has been joined
        """
        options = options or DeathLinkOptions()
        source = options.source or self._slot_name
        if not source:
            raise ValueError("DeathLink needs a source. Join a slot or set DeathLinkOptions.source.")
        event = DeathLink(
            source=source,
            time=options.time or datetime.now(timezone.utc),
            cause=options.cause,
        )
        logger.info("Sending DeathLink from %s", source)
        await self.bounce(event, games=options.games, slots=options.slots)


class _Receiver(_Connection):
    """Read-side operations shared by Client and ClientReceiver."""

    _buffer: deque[ServerMessage]
    _room_info: RoomInfo
    _connected: Connected | None
    _data_package: DataPackageObject | None

    @property
    def room_info(self) -> RoomInfo:
        return self._room_info

    @property
    def connected(self) -> Connected | None:
        return self._connected

    @property
    def data_package(self) -> DataPackageObject | None:
        return self._data_package

    async def receive(self) -> ServerMessage | None:
        """Return the next message from the server.

        Messages already buffered are returned first, oldest first. Otherwise
        one frame is read; its first message is returned and the rest are
        buffered.

        Returns:
            The next message, or None once the connection has closed and the
            buffer is empty

        Raises:
            MalformedMessageError: If a frame cannot be decoded
            NonTextFrameError: If a non-text frame arrives
            TransportError: If the socket fails
        """
        if self._buffer:
            return self._buffer.popleft()
        messages = await _read_messages(self._live_transport())
        if messages is None:
            return None
        self._buffer.extend(messages[1:])
        return messages[0]

    def apply_room_update(self, update: RoomUpdate) -> None:
        """Fold a RoomUpdate into the held RoomInfo and Connected state."""
        self._room_info = self._room_info.apply_update(update)
        if self._connected is not None:
            self._connected = self._connected.apply_update(update)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ServerMessage:
        message = await self.receive()
        if message is None:
            raise StopAsyncIteration
        return message


class Client(_Sender, _Receiver):
    """Archipelago protocol client for one websocket connection.

    Concurrency:
        A whole Client must not be read from and written to by two coroutines
        at the same time. Use split() to get a sender and a receiver that can
        run concurrently.
    """

    def __init__(
        self,
        transport: WebSocketTransport,
        room_info: RoomInfo,
        *,
        buffer: Iterable[ServerMessage] = (),
        config: ClientConfig | None = None,
    ) -> None:
        """Initialize a client over an open transport.

        Args:
            transport: Open transport
            room_info: RoomInfo received when the socket opened
            buffer: Messages already received but not yet consumed
            config: Optional client configuration
        """
        self.config = config or ClientConfig()
        self._transport: WebSocketTransport | None = transport
        self._room_info = room_info
        self._buffer = deque(buffer)
        self._connected: Connected | None = None
        self._data_package: DataPackageObject | None = None
        self._slot_name: str | None = None

    @classmethod
    async def connect(
        cls,
        address: str,
        *,
        config: ClientConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        ssl_context: ssl.SSLContext | None = None,
    ) -> Client:
        """Connect to an Archipelago server and wait for its RoomInfo.

        Args:
            address: "host[:port]", or a ws:// / wss:// URL
            config: Optional client configuration
            session: Optional aiohttp session to open the socket with
            ssl_context: Optional SSL context for wss://

        Raises:
            TransportError: If the socket cannot be opened
            ConnectionClosedError: If the socket closes before RoomInfo
            IllegalResponseError: If the first message is not RoomInfo
        """
        config = config or ClientConfig()
        transport = await open_transport(
            address,
            session=session,
            max_msg_size=config.max_message_size,
            heartbeat=config.heartbeat_s,
            ssl_context=ssl_context,
        )
        try:
            return await cls.from_transport(transport, config=config)
        except BaseException:
            await transport.close()
            raise

    @classmethod
    async def from_transport(
        cls, transport: WebSocketTransport, *, config: ClientConfig | None = None
    ) -> Client:
        """Perform the RoomInfo handshake over an already open transport."""
        messages = await _read_messages(transport)
        if messages is None:
            raise ConnectionClosedError("connection closed before RoomInfo was received")
        first = messages[0]
        if not isinstance(first, RoomInfo):
            raise IllegalResponseError(RoomInfo.cmd, first)
        logger.info(
            "Room %s running server version %s (%d games)",
            first.seed_name,
            first.version,
            len(first.games),
        )
        return cls(transport, first, buffer=messages[1:], config=config)

    @classmethod
    async def connect_with_data_package(
        cls, address: str, games: Iterable[str] | None = None, **kwargs: Any
    ) -> Client:
        """Connect and fetch the data package for games (all room games if None)."""
        client = await cls.connect(address, **kwargs)
        try:
            await client.get_data_package(games)
        except BaseException:
            await client.close()
            raise
        return client

    @property
    def slot_name(self) -> str | None:
        return self._slot_name

    async def close(self) -> None:
        """Close the connection."""
        if self._transport is not None:
            await self._transport.close()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _wait_for(
        self,
        expected: type[M],
        request_cmd: str,
        refuse: tuple[type[ServerMessage], ...] = (),
    ) -> M:
        """Receive until a message of the expected kind arrives.

        Other messages are put back in front of the buffer in the order they
        arrived, whether or not the wait succeeds.

        Raises:
            ConnectionClosedError: If the connection closes first
            SlotRefusedError: If a refused kind is ConnectionRefused
            IllegalResponseError: If a refused kind arrives, or an
                InvalidPacket that names request_cmd
        """
        skipped: list[ServerMessage] = []
        try:
            while True:
                message = await self.receive()
                if message is None:
                    raise ConnectionClosedError(
                        f"connection closed while waiting for {expected.cmd}"
                    )
                if isinstance(message, expected):
                    return message
                if isinstance(message, ConnectionRefused) and ConnectionRefused in refuse:
                    raise SlotRefusedError(message)
                if isinstance(message, refuse) or (
                    isinstance(message, InvalidPacket) and message.original_cmd == request_cmd
                ):
                    raise IllegalResponseError(expected.cmd, message)
                skipped.append(message)
        finally:
            if skipped:
                logger.debug("Requeued %d message(s) while waiting for %s", len(skipped), expected.cmd)
                self._buffer.extendleft(reversed(skipped))

    async def connect_slot(
        self,
        game: str,
        name: str,
        password: str | None = None,
        items_handling: int = ItemsHandlingFlags.ALL,
        tags: Iterable[str] = (),
        *,
        slot_data_factory: Callable[[Any], Any] | None = None,
    ) -> Connected:
        """Join a slot and wait for the server to accept it.

        Args:
            game: Game name of the slot, empty for text-only clients
            name: Slot name
            password: Room password, if required
            items_handling: ItemsHandlingFlags bits; normalized before sending
            tags: Client tags such as "AP" or "DeathLink"
            slot_data_factory: Converts the opaque slot_data payload

        Raises:
            SlotRefusedError: If the server refuses the connection
            IllegalResponseError: If the server answers with InvalidPacket
            ConnectionClosedError: If the connection closes first
        """
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Slot name cannot be empty. Provide the name of the slot to join.")
        await self.send(
            Connect(
                game=game,
                name=name,
                password=password,
                uuid=self.config.uuid,
                version=self.config.version,
                items_handling=normalize_items_handling(items_handling),
                tags=list(tags),
                slot_data=self.config.request_slot_data,
            )
        )
        connected = await self._wait_for(
            Connected, CMD_CONNECT, refuse=(ConnectionRefused, InvalidPacket, RoomInfo)
        )
        if slot_data_factory is not None:
            connected.slot_data = slot_data_factory(connected.slot_data)

        self._connected = connected
        self._slot_name = name
        logger.info("Joined slot %s (%d) on team %d", name, connected.slot, connected.team)
        return connected

    async def sync(self) -> ReceivedItems:
        """Request every item received so far."""
        await self.send(Sync())
        return await self._wait_for(ReceivedItems, CMD_SYNC)

    async def location_scouts(self, locations: Iterable[int], create_as_hint: int = 0) -> LocationInfo:
        """Ask which items are placed at locations without checking them."""
        await self.send(LocationScouts(locations=list(locations), create_as_hint=create_as_hint))
        return await self._wait_for(LocationInfo, CMD_LOCATION_SCOUTS)

    async def get(self, keys: Iterable[str]) -> Retrieved:
        """Read values from the server's data storage."""
        await self.send(Get(keys=list(keys)))
        return await self._wait_for(Retrieved, CMD_GET)

    async def set(
        self,
        key: str,
        default: Any,
        want_reply: bool,
        operations: Iterable[DataStorageOperation],
    ) -> SetReply:
        """Write a value to the server's data storage and wait for its SetReply.

        The server only answers when want_reply is set (or the key is
        watched with SetNotify); otherwise this waits until the connection
        closes. Use send(Set(...)) for writes that need no answer.
        """
        await self.send(Set(key=key, default=default, want_reply=want_reply, operations=list(operations)))
        return await self._wait_for(SetReply, CMD_SET)

    async def get_data_package(self, games: Iterable[str] | None = None) -> DataPackageObject:
        """Fetch the data package and keep it for name resolution.

        Args:
            games: Games to fetch; every game the room advertises when None
        """
        if games is None:
            games = list(self._room_info.datapackage_checksums) or list(self._room_info.games)
        await self.send(GetDataPackage(games=list(games)))
        reply = await self._wait_for(DataPackage, CMD_GET_DATA_PACKAGE)
        self._data_package = reply.data
        logger.debug("Data package received for %s", ", ".join(sorted(reply.data.games)))
        return reply.data

    def split(self) -> tuple[ClientSender, ClientReceiver]:
        """Split into a sender and a receiver that can be used concurrently.

        The client cannot be used afterwards. Operations that pair a request
        with its reply (get, set, sync, location_scouts, get_data_package)
        are not available on either half; send the request with the sender
        and look for the reply on the receiver.
        """
        transport = self._live_transport()
        sender = ClientSender(
            transport,
            room_info=self._room_info,
            data_package=self._data_package,
            slot_name=self._slot_name,
        )
        receiver = ClientReceiver(
            transport,
            room_info=self._room_info,
            buffer=self._buffer,
            connected=self._connected,
            data_package=self._data_package,
        )
        self._transport = None
        self._buffer = deque()
        return sender, receiver


class ClientSender(_Sender):
    """Write half of a split Client."""

    def __init__(
        self,
        transport: WebSocketTransport,
        *,
        room_info: RoomInfo,
        data_package: DataPackageObject | None = None,
        slot_name: str | None = None,
    ) -> None:
        self._transport = transport
        self._room_info = room_info
        self._data_package = data_package
        self._slot_name = slot_name

    @property
    def room_info(self) -> RoomInfo:
        return self._room_info

    @property
    def data_package(self) -> DataPackageObject | None:
        return self._data_package

    async def close(self) -> None:
        """Close the connection; the receiver sees the end of the stream."""
        await self._live_transport().close()


class ClientReceiver(_Receiver):
    """Read half of a split Client. Owns the pending message buffer."""

    def __init__(
        self,
        transport: WebSocketTransport,
        *,
        room_info: RoomInfo,
        buffer: Iterable[ServerMessage] = (),
        connected: Connected | None = None,
        data_package: DataPackageObject | None = None,
    ) -> None:
        self._transport = transport
        self._room_info = room_info
        self._buffer = deque(buffer)
        self._connected = connected
        self._data_package = data_package
