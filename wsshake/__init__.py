"""WebSocket opening handshake for clients and servers over any stream."""

__version__ = "0.1.0"