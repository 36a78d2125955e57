"""The client side of the WebSocket opening handshake."""

from __future__ import annotations

import logging
from typing import Any

from .errors import (
    HttpError,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    UrlError,
    UrlErrorKind,
    Utf8Error,
)
from .headers import Headers, Request, Response, parse_response
from .keys import derive_accept_key
from .machine import (
    Continue,
    Done,
    DoneReading,
    DoneWriting,
    HandshakeMachine,
    HandshakeRole,
    MidHandshake,
)
from .uri import Uri, uri_mode

log = logging.getLogger(__name__)

_KEY_HEADER = "Sec-WebSocket-Key"
_WEBSOCKET_HEADERS = ("Host", "Connection", "Upgrade", "Sec-WebSocket-Version", _KEY_HEADER)
_CANONICAL_NAMES = {
    "sec-websocket-protocol": "Sec-WebSocket-Protocol",
    "origin": "Origin",
}


def _is_visible_ascii(value: str) -> bool:
    return all(c == "\t" or " " <= c <= "~" for c in value)


def _to_str(value: str) -> str:
    if not _is_visible_ascii(value):
        raise Utf8Error()
    return value


def _version_number(version: str) -> tuple[int, int]:
    _, _, number = version.partition("/")
    major, _, minor = number.partition(".")
    try:
        return int(major), int(minor or "0")
    except ValueError as exc:
        raise HttpFormatError(f"invalid HTTP version {version!r}") from exc


def _header_matches(headers: Headers, name: str, expected: str) -> bool:
    value = headers.get(name)
    return value is not None and _is_visible_ascii(value) and value.lower() == expected.lower()


def generate_request(request: Request) -> tuple[bytes, str]:
    """Render ``request`` as the bytes of an upgrade request and return them with its key.

    The request itself is left unchanged.
    """
    path = Uri.parse(request.uri).path_and_query
    if path is None:
        raise UrlError(UrlErrorKind.NO_PATH_OR_QUERY)
    lines = [f"GET {path} {request.version}\r\n"]

    key = request.headers.get(_KEY_HEADER)
    if key is None:
        raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, _KEY_HEADER.lower())
    key = _to_str(key)

    headers = Headers(list(request.headers))
    for name in _WEBSOCKET_HEADERS:
        value = headers.remove(name)
        if value is None:
            raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, name.lower())
        lines.append(f"{name}: {_to_str(value)}\r\n")

    required = {name.lower() for name in _WEBSOCKET_HEADERS}
    for name, value in headers:
        if name in required:
            raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, name)
        # Some servers treat these header names case-sensitively.
        name = _CANONICAL_NAMES.get(name, name)
        lines.append(f"{name}: {_to_str(value)}\r\n")

    lines.append("\r\n")
    data = "".join(lines).encode("latin-1")
    log.debug("Request: %r", data)
    return data, key


def verify_response(response: Response, accept_key: str) -> Response:
    """Check that ``response`` accepts the upgrade; return it unchanged."""
    if response.status != 101:
        raise HttpError(response)
    headers = response.headers
    if not _header_matches(headers, "Upgrade", "websocket"):
        raise ProtocolError(ProtocolErrorKind.MISSING_UPGRADE_WEBSOCKET_HEADER)
    if not _header_matches(headers, "Connection", "Upgrade"):
        raise ProtocolError(ProtocolErrorKind.MISSING_CONNECTION_UPGRADE_HEADER)
    if headers.get("Sec-WebSocket-Accept") != accept_key:
        raise ProtocolError(ProtocolErrorKind.SEC_WEBSOCKET_ACCEPT_KEY_MISMATCH)
    return response


class ClientHandshake(HandshakeRole):
    """Client role: send the upgrade request, then read and verify the reply.

    The finished handshake yields ``(stream, response, tail)``, where ``tail``
    holds bytes the server sent after its response.
    """

    def __init__(self, accept_key: str) -> None:
        self.accept_key = accept_key

    @classmethod
    def start(cls, stream: Any, request: Request) -> MidHandshake:
        """Validate ``request`` and begin the handshake over ``stream``."""
        if request.method != "GET":
            raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
        if _version_number(request.version) < (1, 1):
            raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
        uri_mode(request.uri)
        data, key = generate_request(request)
        machine = HandshakeMachine.start_write(stream, data)
        log.debug("Client handshake initiated.")
        return MidHandshake(cls(derive_accept_key(key)), machine)

    def parse(self, data: bytes) -> tuple[int, Response] | None:
        return parse_response(data)

    def stage_finished(self, stage: DoneReading | DoneWriting) -> Continue | Done:
        if isinstance(stage, DoneWriting):
            return Continue(HandshakeMachine.start_read(stage.stream))
        response = stage.result
        try:
            verify_response(response, self.accept_key)
        except HttpError as exc:
            exc.response.body = stage.tail
            raise
        log.debug("Client handshake done.")
        return Done((stage.stream, response, stage.tail))