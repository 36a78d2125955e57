"""A generic state machine driving one side of a WebSocket handshake."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .buffer import ReadBuffer
from .errors import ProtocolError, ProtocolErrorKind, WebSocketError

Parser = Callable[[bytes], Optional[tuple[int, Any]]]


class RoundStatus(enum.Enum):
    """What a single handshake round achieved."""

    WOULD_BLOCK = "would_block"
    INCOMPLETE = "incomplete"
    STAGE_FINISHED = "stage_finished"


@dataclass
class DoneReading:
    """A complete message was read; ``tail`` holds bytes read past it."""

    result: Any
    stream: Any
    tail: bytes


@dataclass
class DoneWriting:
    """All pending data was written to the stream."""

    stream: Any


Stage = Union[DoneReading, DoneWriting]


@dataclass(frozen=True)
class HandshakeResult:
    """Outcome of one round; ``stage`` is set once a stage has finished."""

    status: RoundStatus
    stage: Optional[Stage] = None


@dataclass
class Continue:
    """The role wants another stage driven by ``machine``."""

    machine: HandshakeMachine


@dataclass
class Done:
    """The handshake finished with ``result``."""

    result: Any


class HandshakeMachine:
    """Reads a message from, or writes data to, a stream one round at a time."""

    def __init__(self, stream: Any, write_data: bytes | None = None) -> None:
        self.stream = stream
        self._buffer = ReadBuffer() if write_data is None else None
        self._pending = b"" if write_data is None else bytes(write_data)
        self._written = 0

    @classmethod
    def start_read(cls, stream: Any) -> HandshakeMachine:
        """Start reading a message from the peer."""
        return cls(stream)

    @classmethod
    def start_write(cls, stream: Any, data: bytes) -> HandshakeMachine:
        """Start writing ``data`` to the peer."""
        if not data:
            raise ValueError("nothing to write")
        return cls(stream, bytes(data))

    @property
    def is_reading(self) -> bool:
        return self._buffer is not None

    def single_round(self, parser: Parser) -> HandshakeResult:
        """Perform one read or write on the stream."""
        if self._buffer is not None:
            return self._read_round(self._buffer, parser)
        return self._write_round()

    def _read_round(self, buffer: ReadBuffer, parser: Parser) -> HandshakeResult:
        try:
            size = buffer.read_from(self.stream)
        except BlockingIOError:
            return HandshakeResult(RoundStatus.WOULD_BLOCK)
        if size == 0:
            raise ProtocolError(ProtocolErrorKind.HANDSHAKE_INCOMPLETE)
        parsed = parser(buffer.chunk())
        if parsed is None:
            return HandshakeResult(RoundStatus.INCOMPLETE)
        consumed, obj = parsed
        buffer.advance(consumed)
        stage = DoneReading(result=obj, stream=self.stream, tail=buffer.into_bytes())
        return HandshakeResult(RoundStatus.STAGE_FINISHED, stage)

    def _write_round(self) -> HandshakeResult:
        remaining = memoryview(self._pending)[self._written :]
        if not remaining:
            raise ValueError("no data left to write")
        send = self.stream.write if hasattr(self.stream, "write") else self.stream.send
        try:
            written = send(remaining)
        except BlockingIOError as exc:
            self._written += getattr(exc, "characters_written", 0)
            return HandshakeResult(RoundStatus.WOULD_BLOCK)
        if written is None:
            return HandshakeResult(RoundStatus.WOULD_BLOCK)
        if written <= 0:
            raise OSError("stream accepted no handshake data")
        self._written += written
        if self._written < len(self._pending):
            return HandshakeResult(RoundStatus.INCOMPLETE)
        return HandshakeResult(RoundStatus.STAGE_FINISHED, DoneWriting(self.stream))


class HandshakeRole(abc.ABC):
    """One side of a handshake: how to parse input and what to do after each stage."""

    @abc.abstractmethod
    def parse(self, data: bytes) -> tuple[int, Any] | None:
        """Parse incoming data; ``None`` means more is needed."""

    @abc.abstractmethod
    def stage_finished(self, stage: Stage) -> Continue | Done:
        """React to a finished stage."""


class HandshakeInterrupted(WebSocketError):
    """The handshake would block; resume it with ``mid_handshake.handshake()``."""

    default_message = "Interrupted handshake (WouldBlock)"

    def __init__(self, mid_handshake: MidHandshake) -> None:
        self.mid_handshake = mid_handshake
        super().__init__(self.default_message)


class MidHandshake:
    """A handshake in progress."""

    def __init__(self, role: HandshakeRole, machine: HandshakeMachine) -> None:
        self.role = role
        self.machine = machine

    def handshake(self) -> Any:
        """Drive the handshake until it finishes or would block."""
        while True:
            outcome = self.machine.single_round(self.role.parse)
            if outcome.status is RoundStatus.WOULD_BLOCK:
                raise HandshakeInterrupted(self)
            if outcome.status is RoundStatus.INCOMPLETE:
                continue
            processed = self.role.stage_finished(outcome.stage)
            if isinstance(processed, Done):
                return processed.result
            self.machine = processed.machine