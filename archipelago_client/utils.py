"""Utility functions for the Archipelago client."""

from __future__ import annotations

import unicodedata
from datetime import datetime
from urllib.parse import urlsplit

DEFAULT_PORT = 38281
SECURE_SCHEME = "wss"
PLAIN_SCHEME = "ws"

_ALLOWED_CONTROLS = frozenset("\t\n\r")
_FORBIDDEN_CHARS = frozenset("\ufffe\uffff")


def get_timestamp() -> str:
    """Return the local time as HH:MM:SS for prefixing printed messages."""
    return datetime.now().strftime("%H:%M:%S")


def normalize_address(address: str) -> str:
    """Strip whitespace and add the default port to a host address.

    Args:
        address: "host", "host:port", or a ws:// / wss:// URL

    Returns:
        Normalized address

    Raises:
        ValueError: If the address is empty or has an invalid port
    """
    if not isinstance(address, str) or not address.strip():
        raise ValueError("Server address cannot be empty. Use host or host:port.")
    address = address.strip()

    scheme, sep, rest = address.partition("://")
    if not sep:
        scheme, rest = "", address
    elif scheme not in (SECURE_SCHEME, PLAIN_SCHEME):
        raise ValueError(f"Unsupported scheme '{scheme}'. Use ws:// or wss://.")

    parts = urlsplit(f"//{rest}")
    if not parts.hostname:
        raise ValueError(f"Server address has no host: {address!r}")
    if parts.port is None:
        rest = parts.netloc + f":{DEFAULT_PORT}" + parts.path
        if parts.query:
            rest += f"?{parts.query}"
    return f"{scheme}://{rest}" if scheme else rest


def candidate_urls(address: str) -> tuple[str, str | None]:
    """Return the URL to try first and the plaintext fallback, if any.

    A bare address is tried over wss:// with a ws:// fallback. An address
    that names its scheme is used as given, without fallback.
    """
    address = normalize_address(address)
    if address.startswith((f"{SECURE_SCHEME}://", f"{PLAIN_SCHEME}://")):
        return address, None
    return f"{SECURE_SCHEME}://{address}", f"{PLAIN_SCHEME}://{address}"


def sanitize_text_input(text: str, max_length: int = 4096) -> str | None:
    """Return chat text without surrounding whitespace, or None if unusable.

    Text is unusable when it is empty, longer than max_length, or holds
    control characters (tab and line breaks aside) or the U+FFFE/U+FFFF
    noncharacters.
    """
    if not isinstance(text, str):
        return None
    cleaned = text.strip()
    if not cleaned or len(cleaned) > max_length:
        return None
    for char in cleaned:
        if char in _FORBIDDEN_CHARS:
            return None
        if unicodedata.category(char) == "Cc" and char not in _ALLOWED_CONTROLS:
            return None
    return cleaned
