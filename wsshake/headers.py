"""HTTP header maps and parsing of handshake requests and responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Iterable, Iterator

from .errors import (
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    TooManyHeadersError,
)

MAX_HEADERS = 124
"""Limit for the number of header lines."""

_TOKEN_BYTES = frozenset(
    b"!#$%&'*+-.^_`|~0123456789"
    b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)


def _is_token(data: bytes) -> bool:
    return bool(data) and all(byte in _TOKEN_BYTES for byte in data)


def _is_field_value(data: bytes) -> bool:
    return all(byte == 0x09 or (byte >= 0x20 and byte != 0x7F) for byte in data)


def _as_bytes(value: Any, what: str) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    try:
        return str(value).encode("latin-1")
    except UnicodeEncodeError as exc:
        raise HttpFormatError(f"invalid HTTP header {what} {value!r}") from exc


def _normalize_name(name: Any) -> str:
    raw = _as_bytes(name, "name")
    if not _is_token(raw):
        raise HttpFormatError(f"invalid HTTP header name {name!r}")
    return raw.decode("ascii").lower()


def _normalize_value(value: Any) -> str:
    raw = _as_bytes(value, "value")
    if not _is_field_value(raw):
        raise HttpFormatError(f"failed to parse header value {value!r}")
    return raw.decode("latin-1")


def _lookup_key(name: Any) -> str:
    if isinstance(name, (bytes, bytearray)):
        return bytes(name).decode("latin-1").lower()
    return str(name).lower()


class Headers:
    """An ordered, case-insensitive multi-map of HTTP header fields.

    Names are stored in lower case; several values may share one name.
    """

    def __init__(self, items: Any = None) -> None:
        self._items: list[tuple[str, str]] = []
        if items is None:
            return
        pairs = items.items() if hasattr(items, "items") else items
        for name, value in pairs:
            self.add(name, value)

    def add(self, name: Any, value: Any) -> None:
        """Append a field, keeping any existing fields of the same name."""
        self._items.append((_normalize_name(name), _normalize_value(value)))

    def get(self, name: Any, default: Any = None) -> Any:
        """Return the first value for ``name`` or ``default``."""
        key = _lookup_key(name)
        return next((value for item, value in self._items if item == key), default)

    def get_all(self, name: Any) -> list[str]:
        """Return every value for ``name`` in the order received."""
        key = _lookup_key(name)
        return [value for item, value in self._items if item == key]

    def remove(self, name: Any) -> str | None:
        """Remove every field called ``name``; return the first value, if any."""
        key = _lookup_key(name)
        values = self.get_all(key)
        self._items = [(item, value) for item, value in self._items if item != key]
        return values[0] if values else None

    def __contains__(self, name: object) -> bool:
        key = _lookup_key(name)
        return any(item == key for item, _ in self._items)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"


def _as_headers(value: Any) -> Headers:
    return value if isinstance(value, Headers) else Headers(value)


@dataclass
class Request:
    """An HTTP request without a body."""

    uri: str
    method: str = "GET"
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)

    def __post_init__(self) -> None:
        self.headers = _as_headers(self.headers)


@dataclass
class Response:
    """An HTTP response with an optional body."""

    status: int = 200
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    body: bytes | None = None

    def __post_init__(self) -> None:
        if not 100 <= self.status <= 999:
            raise HttpFormatError(f"invalid status code {self.status}")
        self.headers = _as_headers(self.headers)

    @property
    def reason(self) -> str:
        """The canonical reason phrase of the status code."""
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return "<unknown status code>"

    @property
    def is_redirection(self) -> bool:
        return 300 <= self.status < 400

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


def _parse_error(message: str) -> ProtocolError:
    return ProtocolError(ProtocolErrorKind.HTTPARSE_ERROR, message)


def _next_line(data: bytes, pos: int) -> tuple[bytes, int] | None:
    end = data.find(b"\n", pos)
    if end < 0:
        return None
    line = data[pos:end]
    if line.endswith(b"\r"):
        line = line[:-1]
    if b"\r" in line:
        raise _parse_error("invalid new line")
    return line, end + 1


def _skip_empty_lines(data: bytes) -> int:
    pos = 0
    while True:
        if data.startswith(b"\r\n", pos):
            pos += 2
        elif data.startswith(b"\n", pos):
            pos += 1
        else:
            return pos


def _parse_header_block(data: bytes, pos: int) -> tuple[int, Headers] | None:
    fields: list[tuple[bytes, bytes]] = []
    while True:
        step = _next_line(data, pos)
        if step is None:
            return None
        line, pos = step
        if not line:
            break
        if len(fields) == MAX_HEADERS:
            raise TooManyHeadersError()
        name, sep, value = line.partition(b":")
        if not sep or not _is_token(name):
            raise _parse_error("invalid header name")
        value = value.strip(b" \t")
        if not _is_field_value(value):
            raise _parse_error("invalid header value")
        fields.append((name, value))
    headers = Headers()
    for name, value in fields:
        headers.add(name.decode("ascii"), value)
    return pos, headers


def _parse_minor_version(token: bytes) -> int:
    if token == b"HTTP/1.1":
        return 1
    if token == b"HTTP/1.0":
        return 0
    raise _parse_error("invalid HTTP version")


def parse_headers(data: bytes) -> tuple[int, Headers] | None:
    """Parse a block of header lines ended by an empty line.

    Returns ``None`` when more data is needed, otherwise the number of
    bytes consumed and the headers.
    """
    return _parse_header_block(bytes(data), 0)


def parse_request(data: bytes) -> tuple[int, Request] | None:
    """Parse a WebSocket upgrade request; ``None`` means incomplete."""
    data = bytes(data)
    step = _next_line(data, _skip_empty_lines(data))
    if step is None:
        return None
    line, pos = step
    method, sep, rest = line.partition(b" ")
    if not sep or not _is_token(method):
        raise _parse_error("invalid token")
    path, sep, version = rest.partition(b" ")
    if not sep or not path or not all(0x21 <= byte <= 0x7E for byte in path):
        raise _parse_error("invalid token")
    minor = _parse_minor_version(version)
    block = _parse_header_block(data, pos)
    if block is None:
        return None
    size, headers = block
    if method != b"GET":
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    if minor < 1:
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
    return size, Request(uri=path.decode("ascii"), headers=headers)


def parse_response(data: bytes) -> tuple[int, Response] | None:
    """Parse an HTTP response head; ``None`` means incomplete."""
    data = bytes(data)
    step = _next_line(data, _skip_empty_lines(data))
    if step is None:
        return None
    line, pos = step
    version, _, rest = line.partition(b" ")
    minor = _parse_minor_version(version)
    code = rest[:3]
    if len(code) != 3 or not code.isdigit() or (len(rest) > 3 and rest[3:4] != b" "):
        raise _parse_error("invalid response status")
    if not _is_field_value(rest[4:]):
        raise _parse_error("invalid response status")
    block = _parse_header_block(data, pos)
    if block is None:
        return None
    size, headers = block
    if minor < 1:
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    return size, Response(status=int(code), headers=headers)


def _pairs(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    return list(headers)