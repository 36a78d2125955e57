# wsshake

`wsshake` performs the WebSocket opening handshake (RFC 6455) for both ends of
a connection. It works over any object with `read`/`write` or `recv`/`send`,
so it suits plain sockets, TLS-wrapped sockets and non-blocking streams alike.
It needs nothing beyond the Python standard library.

## What it does

- Builds and sends a client upgrade request, then checks the server's reply.
  The status must be `101`, `Upgrade: websocket` and `Connection: Upgrade`
  must be present, and `Sec-WebSocket-Accept` must match the key that was sent.
- Reads a client's upgrade request on the server side. It checks the method,
  the HTTP version and the required headers, and answers with
  `101 Switching Protocols`. A callback can inspect the request and refuse it
  with a custom error response.
- Follows HTTP redirects while connecting, up to a set limit. The default is
  three.
- Drives both sides as a small state machine. On a non-blocking stream the
  handshake raises `HandshakeInterrupted` when the stream would block. The
  exception's `mid_handshake` attribute is a `MidHandshake`, and calling its
  `handshake()` continues from where it stopped.

## What it does not do

The package stops once the opening handshake is done. It does not read or
write WebSocket frames or messages, and it does not perform the closing
handshake.

After the handshake you get the stream back. On the client side you also get
the response and any bytes the server sent after it (`tail`). What you do with
the connection after that is up to you.

## Modules

| Module | Contents |
| --- | --- |
| `wsshake.client` | `connect`, `connect_with_config`, `client` |
| `wsshake.server_handshake` | `server_handshake`, `ServerHandshake`, `create_response`, `write_response` |
| `wsshake.client_handshake` | `ClientHandshake`, `generate_request`, `verify_response` |
| `wsshake.machine` | `HandshakeMachine`, `MidHandshake`, `HandshakeRole`, `HandshakeInterrupted`, `Continue`, `Done`, `DoneReading`, `DoneWriting` |
| `wsshake.headers` | `Headers`, `Request`, `Response`, `parse_headers`, `parse_request`, `parse_response` |
| `wsshake.uri` | `Uri`, `Mode`, `uri_mode`, `into_client_request` |
| `wsshake.keys` | `generate_key`, `derive_accept_key` |
| `wsshake.buffer` | `ReadBuffer` |
| `wsshake.errors` | the exception hierarchy rooted at `WebSocketError` |

## Keys

```python
from wsshake.keys import derive_accept_key, generate_key

key = generate_key()          # base64 of 16 random bytes, 24 characters
derive_accept_key(b"dGhlIHNhbXBsZSBub25jZQ==")
# 's3pPLMBiTxaQ9kYGzzhZRbK+xOo='
```

## Connecting as a client

`connect` takes a `ws://` or `wss://` URL. It resolves the host, opens a TCP
connection with `TCP_NODELAY` set, and runs the handshake. For `wss://` it
first wraps the socket using the default `ssl` context. It returns
`(socket, response, tail)`.

```python
from wsshake.client import connect

sock, response, tail = connect("ws://localhost:9001/socket")
print(response.status)            # 101
for name, value in response.headers:
    print(name, value)
```

`connect_with_config(request, max_redirects)` does the same and sets how many
redirects to follow. `connect` calls it with `3`. When a redirect response
has no `Location` header, or the redirect limit is reached, the `HttpError`
is raised to the caller.

`client(request, stream)` runs the handshake over a stream you have already
opened yourself. It returns `(stream, response, tail)`.

A request may be any of these:

- a URL string;
- a `Uri`;
- a ready-made `Request`, which is used as it is.

Only the `ws` and `wss` schemes are accepted. Any other scheme raises
`UrlError`.

## Accepting as a server

```python
import socket

from wsshake.headers import Response
from wsshake.server_handshake import server_handshake

def check(request):
    print("handshake for", request.uri)
    if request.headers.get("Origin") == "http://evil.localhost":
        return Response(status=403, body=b"Access denied")
    return None   # accept

with socket.create_server(("127.0.0.1", 3012)) as listener:
    conn, _ = listener.accept()
    stream = server_handshake(conn, check)
```

The callback receives the parsed `Request`:

- Return `None` to accept the client.
- Return a `Response` to refuse it. The server writes that response to the
  peer, body included, and then raises `HttpError` carrying it.

Bytes that arrive after the request, before the server has answered, raise
`ProtocolError` with kind `JUNK_AFTER_REQUEST`.

`create_response(request)` validates a request and builds the `101` response.
`write_response(response)` renders its status line and headers as bytes.

## Errors

All failures derive from `wsshake.errors.WebSocketError`:

- `ProtocolError` covers handshake violations. Its `kind` is a
  `ProtocolErrorKind`, for example:
  - a wrong HTTP method or version;
  - a missing upgrade header;
  - an accept key that does not match;
  - junk after the request;
  - a handshake that was not finished.
- `UrlError` covers a URL that cannot be used. Its `kind` is a
  `UrlErrorKind`:
  - no host name;
  - an empty host name;
  - an unsupported scheme;
  - no path or query;
  - unable to connect.
- `HttpError` carries a response that is not `101` in its `response`
  attribute. On the client side the response's `body` holds the bytes read
  after its headers.
- `TooManyHeadersError`, a kind of `CapacityError`, is raised when there are
  more than 124 header lines.
- `Utf8Error` and `HttpFormatError` cover malformed header text, URIs and
  status codes.
- `TlsError` wraps a failure while setting up TLS in `connect`.

## Running the tests

The tests use pytest, which is listed under the `test` extra:

```
pip install -e .[test]
pytest
```