"""Connecting to a WebSocket server as a client."""

from __future__ import annotations

import logging
import socket
import ssl
from typing import Any

from .client_handshake import ClientHandshake
from .errors import HttpError, TlsError, UrlError, UrlErrorKind, Utf8Error
from .headers import Headers, Request, Response
from .machine import HandshakeInterrupted
from .uri import Mode, Uri, into_client_request, uri_mode

log = logging.getLogger(__name__)

_DEFAULT_PORTS = {Mode.PLAIN: 80, Mode.TLS: 443}


def client(request: Any, stream: Any) -> tuple[Any, Response, bytes]:
    """Perform the client handshake over an already open ``stream``.

    Returns ``(stream, response, tail)``. A non-blocking stream that would
    block raises HandshakeInterrupted, from which the handshake can resume.
    """
    return ClientHandshake.start(stream, into_client_request(request)).handshake()


def _connect_to_some(addresses: list[tuple[Any, ...]], uri: str) -> socket.socket:
    for family, kind, proto, _, address in addresses:
        log.debug("Trying to contact %s at %s...", uri, address)
        sock = socket.socket(family, kind, proto)
        try:
            sock.connect(address)
        except OSError:
            sock.close()
            continue
        return sock
    raise UrlError(UrlErrorKind.UNABLE_TO_CONNECT, uri)


def _try_client_handshake(request: Request) -> tuple[Any, Response, bytes]:
    uri = Uri.parse(request.uri)
    mode = uri_mode(uri)
    host = uri.host
    if not host:
        raise UrlError(UrlErrorKind.NO_HOST_NAME)
    port = uri.port if uri.port is not None else _DEFAULT_PORTS[mode]
    bare_host = host.strip("[]")
    addresses = socket.getaddrinfo(bare_host, port, type=socket.SOCK_STREAM)
    stream: Any = _connect_to_some(addresses, str(uri))
    try:
        stream.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        if mode is Mode.TLS:
            try:
                stream = ssl.create_default_context().wrap_socket(
                    stream, server_hostname=bare_host
                )
            except ssl.SSLError as exc:
                raise TlsError(str(exc)) from exc
        return ClientHandshake.start(stream, request).handshake()
    except HandshakeInterrupted as exc:
        stream.close()
        raise RuntimeError("blocking handshake was interrupted") from exc
    except BaseException:
        stream.close()
        raise


def connect_with_config(request: Any, max_redirects: int = 3) -> tuple[Any, Response, bytes]:
    """Open a TCP (or TLS) connection and perform the handshake, following redirects.

    Returns ``(socket, response, tail)``.
    """
    if max_redirects < 0:
        raise ValueError("max_redirects must not be negative")
    original = into_client_request(request)
    uri = original.uri
    for attempt in range(max_redirects + 1):
        attempt_request = Request(
            uri=uri,
            method=original.method,
            version=original.version,
            headers=Headers(list(original.headers)),
        )
        try:
            return _try_client_handshake(attempt_request)
        except HttpError as exc:
            response = exc.response
            if not (response.is_redirection and attempt < max_redirects):
                raise
            location = response.headers.get("Location")
            if location is None:
                log.warning("No `Location` found in redirect")
                raise
            if not (location.isascii() and location.isprintable()):
                raise Utf8Error() from exc
            uri = str(Uri.parse(location))
            log.debug("Redirecting to %s", uri)
    raise AssertionError("redirect handling fell through")


def connect(request: Any) -> tuple[Any, Response, bytes]:
    """Connect to a ws:// or wss:// URL, following up to three redirects."""
    return connect_with_config(request, 3)