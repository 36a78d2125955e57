"""Sec-WebSocket-Key generation and Sec-WebSocket-Accept derivation."""

from __future__ import annotations

import base64
import hashlib
import secrets

_WS_GUID = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


def derive_accept_key(request_key: bytes | str) -> str:
    """Derive the Sec-WebSocket-Accept value for a Sec-WebSocket-Key value."""
    if isinstance(request_key, str):
        request_key = request_key.encode("ascii")
    digest = hashlib.sha1(request_key + _WS_GUID).digest()
    return base64.b64encode(digest).decode("ascii")


def generate_key() -> str:
    """Return a random base64-encoded 16-byte key."""
    return base64.b64encode(secrets.token_bytes(16)).decode("ascii")