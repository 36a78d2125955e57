"""Exceptions raised by the WebSocket handshake and protocol code."""

from __future__ import annotations

import enum
from typing import Any


class WebSocketError(Exception):
    """Base class for every error the package raises."""

    default_message = "WebSocket error"

    def __str__(self) -> str:
        return super().__str__() or self.default_message


class ConnectionClosedError(WebSocketError):
    """The connection was closed normally; the socket is no longer usable."""

    default_message = "Connection closed normally"


class AlreadyClosedError(WebSocketError):
    """An attempt was made to use a connection that is already closed."""

    default_message = "Trying to work with closed connection"


class TlsError(WebSocketError):
    """An error reported by the TLS layer."""

    default_message = "TLS error"

    def __str__(self) -> str:
        detail = Exception.__str__(self)
        return f"TLS error: {detail}" if detail else self.default_message


class CapacityError(WebSocketError):
    """A size or count limit was exceeded."""

    default_message = "Space limit exceeded"
    reason = ""

    def __str__(self) -> str:
        reason = Exception.__str__(self) or self.reason
        return f"Space limit exceeded: {reason}" if reason else self.default_message


class TooManyHeadersError(CapacityError):
    """More header lines were received than the parser accepts."""

    reason = "Too many headers"


class MessageTooLongError(CapacityError):
    """A message is larger than the configured maximum size."""

    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__(f"Message too long: {size} > {max_size}")


class ProtocolErrorKind(enum.Enum):
    """The specific cause of a protocol violation."""

    WRONG_HTTP_METHOD = "Unsupported HTTP method used - only GET is allowed"
    WRONG_HTTP_VERSION = "HTTP version must be 1.1 or higher"
    MISSING_CONNECTION_UPGRADE_HEADER = 'No "Connection: upgrade" header'
    MISSING_UPGRADE_WEBSOCKET_HEADER = 'No "Upgrade: websocket" header'
    MISSING_SEC_WEBSOCKET_VERSION_HEADER = 'No "Sec-WebSocket-Version: 13" header'
    MISSING_SEC_WEBSOCKET_KEY = 'No "Sec-WebSocket-Key" header'
    SEC_WEBSOCKET_ACCEPT_KEY_MISMATCH = 'Key mismatch in "Sec-WebSocket-Accept" header'
    JUNK_AFTER_REQUEST = "Junk after client request"
    CUSTOM_RESPONSE_SUCCESSFUL = "Custom response must not be successful"
    INVALID_HEADER = "Missing, duplicated or incorrect header {0}"
    HANDSHAKE_INCOMPLETE = "Handshake not finished"
    HTTPARSE_ERROR = "httparse error: {0}"
    SEND_AFTER_CLOSING = "Sending after closing is not allowed"
    RECEIVED_AFTER_CLOSING = "Remote sent after having closed"
    NON_ZERO_RESERVED_BITS = "Reserved bits are non-zero"
    UNMASKED_FRAME_FROM_CLIENT = "Received an unmasked frame from client"
    MASKED_FRAME_FROM_SERVER = "Received a masked frame from server"
    FRAGMENTED_CONTROL_FRAME = "Fragmented control frame"
    CONTROL_FRAME_TOO_BIG = "Control frame too big (payload must be 125 bytes or less)"
    UNKNOWN_CONTROL_FRAME_TYPE = "Unknown control frame type: {0}"
    UNKNOWN_DATA_FRAME_TYPE = "Unknown data frame type: {0}"
    UNEXPECTED_CONTINUE_FRAME = "Continue frame but nothing to continue"
    EXPECTED_FRAGMENT = "While waiting for more fragments received: {0}"
    RESET_WITHOUT_CLOSING_HANDSHAKE = "Connection reset without closing handshake"
    INVALID_OPCODE = "Encountered invalid opcode: {0}"
    INVALID_CLOSE_SEQUENCE = "Invalid close sequence"

    @property
    def takes_detail(self) -> bool:
        return "{0}" in self.value

    def describe(self, detail: Any = None) -> str:
        return self.value.format(detail) if self.takes_detail else self.value


def _check_detail(kind: Any, detail: Any) -> None:
    if kind.takes_detail and detail is None:
        raise TypeError(f"{kind.name} requires a detail value")
    if not kind.takes_detail and detail is not None:
        raise TypeError(f"{kind.name} takes no detail value")


class ProtocolError(WebSocketError):
    """The peer or the caller violated the WebSocket protocol."""

    def __init__(self, kind: ProtocolErrorKind, detail: Any = None) -> None:
        _check_detail(kind, detail)
        self.kind = kind
        self.detail = detail
        super().__init__(f"WebSocket protocol error: {kind.describe(detail)}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProtocolError):
            return NotImplemented
        return (self.kind, self.detail) == (other.kind, other.detail)

    def __hash__(self) -> int:
        return hash((self.kind, repr(self.detail)))


class SendQueueFullError(WebSocketError):
    """The outgoing queue is full; the rejected message is kept."""

    default_message = "Send queue is full"

    def __init__(self, message: Any) -> None:
        self.message = message
        super().__init__()


class Utf8Error(WebSocketError):
    """Text was not valid UTF-8."""

    default_message = "UTF-8 encoding error"


class UrlErrorKind(enum.Enum):
    """The specific cause of a URL error."""

    TLS_FEATURE_NOT_ENABLED = "TLS support not compiled in"
    NO_HOST_NAME = "No host name in the URL"
    UNABLE_TO_CONNECT = "Unable to connect to {0}"
    UNSUPPORTED_URL_SCHEME = "URL scheme not supported"
    EMPTY_HOST_NAME = "URL contains empty host name"
    NO_PATH_OR_QUERY = "No path/query in URL"

    @property
    def takes_detail(self) -> bool:
        return "{0}" in self.value

    def describe(self, detail: Any = None) -> str:
        return self.value.format(detail) if self.takes_detail else self.value


class UrlError(WebSocketError):
    """A URL could not be used for a WebSocket connection."""

    def __init__(self, kind: UrlErrorKind, detail: Any = None) -> None:
        _check_detail(kind, detail)
        self.kind = kind
        self.detail = detail
        super().__init__(f"URL error: {kind.describe(detail)}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UrlError):
            return NotImplemented
        return (self.kind, self.detail) == (other.kind, other.detail)

    def __hash__(self) -> int:
        return hash((self.kind, repr(self.detail)))


class HttpError(WebSocketError):
    """The peer answered with an HTTP response that is not an upgrade."""

    def __init__(self, response: Any) -> None:
        self.response = response
        status = getattr(response, "status", response)
        super().__init__(f"HTTP error: {status}")


class HttpFormatError(WebSocketError):
    """An HTTP value (URI, header name or value, status) was malformed."""

    default_message = "HTTP format error"

    def __str__(self) -> str:
        detail = Exception.__str__(self)
        return f"HTTP format error: {detail}" if detail else self.default_message