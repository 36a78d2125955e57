"""The server side of the WebSocket opening handshake."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Optional

from .errors import HttpError, HttpFormatError, ProtocolError, ProtocolErrorKind, Utf8Error
from .headers import Headers, Request, Response, parse_request
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

log = logging.getLogger(__name__)

Callback = Callable[[Request], Optional[Response]]
"""Called with the client's request; return None to accept or a Response to reject."""

_CONNECTION_TOKENS = re.compile(r"[ ,]")


def _is_visible_ascii(value: str) -> bool:
    return all(c == "\t" or " " <= c <= "~" for c in value)


def _version_number(version: str) -> tuple[int, int]:
    _, _, number = version.partition("/")
    major, _, minor = number.partition(".")
    try:
        return int(major), int(minor or "0")
    except ValueError as exc:
        raise HttpFormatError(f"invalid HTTP version {version!r}") from exc


def _ascii_header(headers: Headers, name: str) -> str | None:
    value = headers.get(name)
    if value is None or not _is_visible_ascii(value):
        return None
    return value


def create_response(request: Request) -> Response:
    """Validate an upgrade request and build the 101 response accepting it."""
    if request.method != "GET":
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    if _version_number(request.version) < (1, 1):
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)

    headers = request.headers
    connection = _ascii_header(headers, "Connection")
    if connection is None or not any(
        token.lower() == "upgrade" for token in _CONNECTION_TOKENS.split(connection)
    ):
        raise ProtocolError(ProtocolErrorKind.MISSING_CONNECTION_UPGRADE_HEADER)

    upgrade = _ascii_header(headers, "Upgrade")
    if upgrade is None or upgrade.lower() != "websocket":
        raise ProtocolError(ProtocolErrorKind.MISSING_UPGRADE_WEBSOCKET_HEADER)

    if headers.get("Sec-WebSocket-Version") != "13":
        raise ProtocolError(ProtocolErrorKind.MISSING_SEC_WEBSOCKET_VERSION_HEADER)

    key = headers.get("Sec-WebSocket-Key")
    if key is None:
        raise ProtocolError(ProtocolErrorKind.MISSING_SEC_WEBSOCKET_KEY)

    return Response(
        status=101,
        version=request.version,
        headers=[
            ("Connection", "Upgrade"),
            ("Upgrade", "websocket"),
            ("Sec-WebSocket-Accept", derive_accept_key(key.encode("latin-1"))),
        ],
    )


def write_response(response: Response) -> bytes:
    """Render the status line and headers of ``response``, without the body."""
    lines = [f"{response.version} {response.status} {response.reason}\r\n"]
    for name, value in response.headers:
        if not _is_visible_ascii(value):
            raise Utf8Error()
        lines.append(f"{name}: {value}\r\n")
    lines.append("\r\n")
    return "".join(lines).encode("ascii")


class ServerHandshake(HandshakeRole):
    """Server role: read the upgrade request, then write the reply.

    The finished handshake yields the stream, ready for WebSocket traffic.
    """

    def __init__(self, callback: Callback | None = None) -> None:
        self.callback = callback
        self.error_response: Response | None = None

    @classmethod
    def start(cls, stream: Any, callback: Callback | None = None) -> MidHandshake:
        """Begin the server handshake over ``stream``."""
        log.debug("Server handshake initiated.")
        return MidHandshake(cls(callback), HandshakeMachine.start_read(stream))

    def parse(self, data: bytes) -> tuple[int, Request] | None:
        return parse_request(data)

    def stage_finished(self, stage: DoneReading | DoneWriting) -> Continue | Done:
        if isinstance(stage, DoneReading):
            return self._reply(stage)
        if self.error_response is not None:
            response, self.error_response = self.error_response, None
            log.debug("Server handshake failed.")
            raise HttpError(response)
        log.debug("Server handshake done.")
        return Done(stage.stream)

    def _reply(self, stage: DoneReading) -> Continue:
        if stage.tail:
            raise ProtocolError(ProtocolErrorKind.JUNK_AFTER_REQUEST)
        callback, self.callback = self.callback, None
        rejection = callback(stage.result) if callback is not None else None
        if rejection is None:
            output = write_response(create_response(stage.result))
        else:
            self.error_response = rejection
            output = write_response(rejection) + (rejection.body or b"")
        return Continue(HandshakeMachine.start_write(stage.stream, output))


def server_handshake(stream: Any, callback: Callback | None = None) -> Any:
    """Accept a WebSocket client on ``stream``; return the stream once upgraded."""
    return ServerHandshake.start(stream, callback).handshake()