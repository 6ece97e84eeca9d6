"""JSON codec for Archipelago frames."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from .constants import K_CMD
from .errors import EncodeError, MalformedMessageError
from .messages import SERVER_MESSAGE_TYPES
from .models import Message, ServerMessage

logger = logging.getLogger(__name__)


def encode(messages: Message | Iterable[Message]) -> str:
    """Encode one or more messages into a frame.

    Args:
        messages: A message or an iterable of messages

    Returns:
        JSON text, always an array even for a single message

    Raises:
        EncodeError: If a message holds a value JSON cannot represent
    """
    if isinstance(messages, Message):
        messages = [messages]
    try:
        return json.dumps([m.to_dict() for m in messages], allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise EncodeError(f"message failed to serialize: {e}") from e


def decode_message(data: Any) -> ServerMessage:
    """Decode one already-parsed server message object.

    Raises:
        TypeError: If data is not an object or a field has the wrong type
        ValueError: If the command is unknown or a field is missing/invalid
    """
    if not isinstance(data, dict):
        raise TypeError(f"message must be an object, got {type(data).__name__}")
    cmd = data.get(K_CMD)
    if not isinstance(cmd, str):
        raise ValueError(f"message has no '{K_CMD}' field")
    cls = SERVER_MESSAGE_TYPES.get(cmd)
    if cls is None:
        raise ValueError(f"unknown server command '{cmd}'")
    return cls.from_dict(data)


def decode(text: str) -> list[ServerMessage]:
    """Decode a frame into server messages.

    Args:
        text: Frame text, a JSON array of messages or one bare message

    Returns:
        The messages in the order they appear in the frame

    Raises:
        MalformedMessageError: If the frame cannot be decoded
    """
    try:
        parsed = json.loads(text)
    except ValueError as e:
        raise MalformedMessageError(f"invalid JSON: {e}", text) from e

    items = parsed if isinstance(parsed, list) else [parsed]
    try:
        return [decode_message(item) for item in items]
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(str(e), text) from e
