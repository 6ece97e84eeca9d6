"""Exceptions raised by the Archipelago client."""

from __future__ import annotations

from typing import Any


class ArchipelagoError(Exception):
    """Base class for every error raised by this package."""

    pass


class TransportError(ArchipelagoError):
    """Raised when the websocket cannot be opened or fails mid-operation."""

    pass


class ConnectionClosedError(ArchipelagoError):
    """Raised when the connection closes while a reply is still expected."""

    def __init__(self, message: str = "connection closed by server") -> None:
        super().__init__(message)


class EncodeError(ArchipelagoError):
    """Raised when an outgoing message cannot be represented as JSON."""

    pass


class MalformedMessageError(ArchipelagoError):
    """Raised when an incoming frame cannot be decoded.

    Attributes:
        text: The wire text of the frame that failed to decode
    """

    def __init__(self, reason: str, text: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.text = text


class IllegalResponseError(ArchipelagoError):
    """Raised when a valid message of the wrong kind arrives.

    Attributes:
        expected: Name of the message kind that was required
        received: The message that arrived instead
    """

    def __init__(self, expected: str, received: Any) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"illegal response: expected {expected}, received {self.received_type}")

    @property
    def received_type(self) -> str:
        return getattr(self.received, "cmd", type(self.received).__name__)


class SlotRefusedError(IllegalResponseError):
    """Raised when the server answers Connect with ConnectionRefused."""

    def __init__(self, received: Any) -> None:
        self.errors: list[str] = list(getattr(received, "errors", []))
        super().__init__("Connected", received)

    def __str__(self) -> str:
        if self.errors:
            return f"connection refused: {', '.join(self.errors)}"
        return "connection refused"


class NonTextFrameError(ArchipelagoError):
    """Raised when the websocket delivers a frame that is not text.

    Attributes:
        frame: The aiohttp message that was received
    """

    def __init__(self, frame: Any) -> None:
        self.frame = frame
        kind = getattr(frame, "type", None)
        super().__init__(f"unexpected non-text result from websocket: {kind!r}")
