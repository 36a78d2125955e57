"""URIs and conversion of targets into client upgrade requests."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any

from .errors import HttpFormatError, UrlError, UrlErrorKind
from .headers import Headers, Request
from .keys import generate_key

_SCHEME = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*\Z")


class Mode(enum.Enum):
    """Whether a connection is plain or goes over TLS."""

    PLAIN = "plain"
    TLS = "tls"


def _split_query(text: str) -> tuple[str, str | None]:
    path, sep, query = text.partition("?")
    return path, (query if sep else None)


def _check_port(port: str) -> None:
    if not port.isdigit() or int(port) > 65535:
        raise HttpFormatError(f"invalid port {port!r}")


def _check_authority(authority: str) -> None:
    if not authority or any(c in authority for c in "/?#"):
        raise HttpFormatError(f"invalid authority {authority!r}")
    if authority.endswith("@"):
        raise HttpFormatError(f"invalid authority {authority!r}")
    host_port = authority.rpartition("@")[2]
    if host_port.startswith("["):
        host, bracket, rest = host_port.partition("]")
        if not bracket or (rest and not rest.startswith(":")):
            raise HttpFormatError(f"invalid authority {authority!r}")
        if rest:
            _check_port(rest[1:])
        return
    if host_port.count(":") > 1:
        raise HttpFormatError(f"invalid authority {authority!r}")
    _, sep, port = host_port.partition(":")
    if sep:
        _check_port(port)


@dataclass(frozen=True)
class Uri:
    """A request target: absolute, origin-form or authority-form."""

    scheme: str | None = None
    authority: str | None = None
    path: str = ""
    query: str | None = None

    @classmethod
    def parse(cls, text: Any) -> Uri:
        """Parse ``text``; raise HttpFormatError if it is not a valid URI."""
        if isinstance(text, Uri):
            return text
        text = str(text)
        if not text:
            raise HttpFormatError("empty URI")
        if any(ord(c) <= 0x20 or ord(c) >= 0x7F for c in text):
            raise HttpFormatError(f"invalid URI character in {text!r}")
        text = text.partition("#")[0]
        if text == "*":
            return cls(path="*")
        if text.startswith("/"):
            path, query = _split_query(text)
            return cls(path=path, query=query)
        scheme, sep, rest = text.partition("://")
        if not sep:
            _check_authority(text)
            return cls(authority=text)
        if not _SCHEME.match(scheme):
            raise HttpFormatError(f"invalid URI scheme {scheme!r}")
        end = next((i for i, c in enumerate(rest) if c in "/?"), len(rest))
        authority = rest[:end]
        _check_authority(authority)
        path, query = _split_query(rest[end:])
        return cls(scheme=scheme, authority=authority, path=path, query=query)

    @property
    def host(self) -> str | None:
        if self.authority is None:
            return None
        host_port = self.authority.rpartition("@")[2]
        if host_port.startswith("["):
            return host_port[: host_port.index("]") + 1]
        return host_port.partition(":")[0]

    @property
    def port(self) -> int | None:
        if self.authority is None:
            return None
        host_port = self.authority.rpartition("@")[2]
        if host_port.startswith("["):
            host_port = host_port.partition("]")[2]
        _, sep, port = host_port.rpartition(":")
        return int(port) if sep and port else None

    @property
    def path_and_query(self) -> str | None:
        """Path plus query, or None for an authority-form URI."""
        if self.scheme is None and self.authority is not None:
            return None
        path = self.path or "/"
        return path if self.query is None else f"{path}?{self.query}"

    def __str__(self) -> str:
        if self.scheme is not None:
            return f"{self.scheme}://{self.authority}{self.path_and_query}"
        if self.authority is not None:
            return self.authority
        return self.path if self.query is None else f"{self.path}?{self.query}"


def uri_mode(uri: Any) -> Mode:
    """Return the connection mode for a ws:// or wss:// URI."""
    scheme = Uri.parse(uri).scheme
    if scheme == "ws":
        return Mode.PLAIN
    if scheme == "wss":
        return Mode.TLS
    raise UrlError(UrlErrorKind.UNSUPPORTED_URL_SCHEME)


def into_client_request(target: Any) -> Request:
    """Turn a URL string, Uri or Request into a client upgrade request.

    A Request is returned unchanged.
    """
    if isinstance(target, Request):
        return target
    if isinstance(target, str):
        target = Uri.parse(target)
    if not isinstance(target, Uri):
        raise TypeError(f"cannot build a client request from {type(target).__name__}")
    if target.authority is None:
        raise UrlError(UrlErrorKind.NO_HOST_NAME)
    host = target.authority.split("@", 1)[-1]
    if not host:
        raise UrlError(UrlErrorKind.EMPTY_HOST_NAME)
    headers = Headers(
        [
            ("Host", host),
            ("Connection", "Upgrade"),
            ("Upgrade", "websocket"),
            ("Sec-WebSocket-Version", "13"),
            ("Sec-WebSocket-Key", generate_key()),
        ]
    )
    return Request(uri=str(target), method="GET", headers=headers)