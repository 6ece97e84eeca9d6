"""Websocket transport for the Archipelago client, built on aiohttp."""

from __future__ import annotations

import asyncio
import logging
import ssl

import aiohttp

from .errors import ConnectionClosedError, NonTextFrameError, TransportError
from .utils import candidate_urls

logger = logging.getLogger(__name__)

_CLOSE_TYPES = (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED)
_CONTROL_TYPES = (aiohttp.WSMsgType.PING, aiohttp.WSMsgType.PONG)


class WebSocketTransport:
    """One open websocket carrying text frames.

    One coroutine may read while another writes; two concurrent reads or
    two concurrent writes are not supported.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: aiohttp.ClientSession | None = None,
        url: str = "",
    ) -> None:
        """Initialize the transport.

        Args:
            ws: Open aiohttp websocket
            session: HTTP session to close together with the socket, if owned
            url: URL the socket was opened on
        """
        self._ws = ws
        self._session = session
        self.url = url

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send_text(self, text: str) -> None:
        """Write one text frame.

        Raises:
            ConnectionClosedError: If the socket is closed
            TransportError: If the write fails
        """
        if self._ws.closed:
            raise ConnectionClosedError("connection is closed")
        try:
            await self._ws.send_str(text)
        except ConnectionResetError as e:
            raise ConnectionClosedError() from e
        except aiohttp.ClientError as e:
            raise TransportError(f"failed to send frame: {e}") from e

    async def receive_text(self) -> str | None:
        """Read the next text frame.

        Returns:
            Frame text, or None once the socket has closed

        Raises:
            NonTextFrameError: If a binary (or other non-text) frame arrives
            TransportError: If the socket reports an error
        """
        while True:
            try:
                msg = await self._ws.receive()
            except (aiohttp.ClientError, OSError) as e:
                raise TransportError(f"failed to receive frame: {e}") from e

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type in _CONTROL_TYPES:
                continue
            if msg.type in _CLOSE_TYPES:
                logger.debug("Websocket closed (code=%s)", self._ws.close_code)
                return None
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"websocket error: {msg.data}")
            raise NonTextFrameError(msg)

    async def close(self) -> None:
        """Close the socket and the owned HTTP session."""
        try:
            if not self._ws.closed:
                await self._ws.close()
        finally:
            if self._session is not None and not self._session.closed:
                await self._session.close()


async def _ws_connect(
    session: aiohttp.ClientSession,
    url: str,
    *,
    max_msg_size: int,
    heartbeat: float | None,
    ssl_context: ssl.SSLContext | None,
) -> aiohttp.ClientWebSocketResponse:
    kwargs = {"max_msg_size": max_msg_size, "heartbeat": heartbeat}
    if ssl_context is not None:
        kwargs["ssl"] = ssl_context
    logger.debug("Opening websocket to %s", url)
    return await session.ws_connect(url, **kwargs)


async def open_transport(
    address: str,
    *,
    session: aiohttp.ClientSession | None = None,
    max_msg_size: int = 0,
    heartbeat: float | None = None,
    ssl_context: ssl.SSLContext | None = None,
) -> WebSocketTransport:
    """Open a websocket to an Archipelago server.

    A bare address is tried over wss:// first. Only a failure of the TLS
    handshake itself causes a single retry over ws://; every other failure is
    raised immediately.

    Args:
        address: "host[:port]" or an explicit ws:// / wss:// URL
        session: aiohttp session to use; a private one is created if None
        max_msg_size: Largest accepted frame in bytes, 0 for no limit
        heartbeat: Seconds between websocket pings, None to disable
        ssl_context: Optional SSL context for wss:// connections

    Returns:
        Open transport

    Raises:
        ValueError: If the address is invalid
        TransportError: If the connection cannot be established
    """
    primary, fallback = candidate_urls(address)
    owned = session is None
    if session is None:
        session = aiohttp.ClientSession()

    options = {"max_msg_size": max_msg_size, "heartbeat": heartbeat, "ssl_context": ssl_context}
    try:
        try:
            ws = await _ws_connect(session, primary, **options)
            url = primary
        except aiohttp.ClientSSLError as e:
            if fallback is None:
                raise TransportError(f"TLS handshake with {primary} failed: {e}") from e
            logger.warning("TLS handshake with %s failed (%s), retrying over %s", primary, e, fallback)
            ws = await _ws_connect(session, fallback, **options)
            url = fallback
    except TransportError:
        if owned:
            await session.close()
        raise
    except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
        if owned:
            await session.close()
        raise TransportError(f"failed to connect to {address}: {e}") from e

    logger.info("Connected to %s", url)
    return WebSocketTransport(ws, session if owned else None, url)
