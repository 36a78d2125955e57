import io

import pytest

from wsshake.errors import ProtocolError, ProtocolErrorKind
from wsshake.headers import parse_headers
from wsshake.machine import (
    Continue,
    Done,
    DoneReading,
    DoneWriting,
    HandshakeInterrupted,
    HandshakeMachine,
    HandshakeRole,
    MidHandshake,
    RoundStatus,
)

HEADERS = b"Host: foo.com\r\nUpgrade: websocket\r\n\r\n"


class TrickleReader:
    def __init__(self, data, step):
        self._source = io.BytesIO(data)
        self._step = step

    def read(self, size):
        return self._source.read(min(size, self._step))


class BlockingReader:
    def read(self, size):
        raise BlockingIOError("no data")


class LimitedWriter:
    def __init__(self, step):
        self.output = bytearray()
        self._step = step

    def write(self, data):
        piece = bytes(data[: self._step])
        self.output.extend(piece)
        return len(piece)


class StallingWriter:
    def write(self, data):
        return None


class Duplex:
    def __init__(self, incoming, block_first_read=False):
        self.incoming = io.BytesIO(incoming)
        self.outgoing = io.BytesIO()
        self._block = block_first_read

    def read(self, size):
        if self._block:
            self._block = False
            raise BlockingIOError("not yet")
        return self.incoming.read(size)

    def write(self, data):
        return self.outgoing.write(data)


class WriteThenReadRole(HandshakeRole):
    def parse(self, data):
        return parse_headers(data)

    def stage_finished(self, stage):
        if isinstance(stage, DoneWriting):
            return Continue(HandshakeMachine.start_read(stage.stream))
        return Done((stage.result, stage.tail))


def test_read_round_finishes_with_tail():
    machine = HandshakeMachine.start_read(io.BytesIO(HEADERS + b"extra"))
    outcome = machine.single_round(parse_headers)
    assert outcome.status is RoundStatus.STAGE_FINISHED
    assert isinstance(outcome.stage, DoneReading)
    assert outcome.stage.tail == b"extra"
    assert outcome.stage.result.get("Host") == "foo.com"


def test_read_rounds_until_complete():
    machine = HandshakeMachine.start_read(TrickleReader(HEADERS, 5))
    statuses = []
    while True:
        outcome = machine.single_round(parse_headers)
        statuses.append(outcome.status)
        if outcome.status is RoundStatus.STAGE_FINISHED:
            break
    assert statuses[0] is RoundStatus.INCOMPLETE
    assert statuses.count(RoundStatus.STAGE_FINISHED) == 1
    assert outcome.stage.tail == b""
    assert outcome.stage.result.get("Upgrade") == "websocket"


def test_read_from_empty_stream_is_incomplete_handshake():
    machine = HandshakeMachine.start_read(io.BytesIO(b""))
    with pytest.raises(ProtocolError) as info:
        machine.single_round(parse_headers)
    assert info.value.kind is ProtocolErrorKind.HANDSHAKE_INCOMPLETE


def test_read_would_block():
    machine = HandshakeMachine.start_read(BlockingReader())
    assert machine.single_round(parse_headers).status is RoundStatus.WOULD_BLOCK


def test_parser_error_propagates():
    machine = HandshakeMachine.start_read(io.BytesIO(b"Bad Name: v\r\n\r\n"))
    with pytest.raises(ProtocolError) as info:
        machine.single_round(parse_headers)
    assert info.value.kind is ProtocolErrorKind.HTTPARSE_ERROR


def test_write_round_writes_everything():
    stream = io.BytesIO()
    machine = HandshakeMachine.start_write(stream, HEADERS)
    outcome = machine.single_round(parse_headers)
    assert outcome.status is RoundStatus.STAGE_FINISHED
    assert isinstance(outcome.stage, DoneWriting)
    assert outcome.stage.stream is stream
    assert stream.getvalue() == HEADERS


def test_write_in_pieces():
    writer = LimitedWriter(7)
    machine = HandshakeMachine.start_write(writer, HEADERS)
    first = machine.single_round(parse_headers)
    assert first.status is RoundStatus.INCOMPLETE
    outcome = first
    while outcome.status is not RoundStatus.STAGE_FINISHED:
        outcome = machine.single_round(parse_headers)
    assert bytes(writer.output) == HEADERS


def test_write_would_block():
    machine = HandshakeMachine.start_write(StallingWriter(), HEADERS)
    assert machine.single_round(parse_headers).status is RoundStatus.WOULD_BLOCK


def test_start_write_requires_data():
    with pytest.raises(ValueError):
        HandshakeMachine.start_write(io.BytesIO(), b"")


def test_mid_handshake_runs_all_stages():
    stream = Duplex(HEADERS + b"rest")
    mid = MidHandshake(WriteThenReadRole(), HandshakeMachine.start_write(stream, b"hello"))
    headers, tail = mid.handshake()
    assert stream.outgoing.getvalue() == b"hello"
    assert headers.get("Host") == "foo.com"
    assert tail == b"rest"


def test_interrupted_handshake_resumes():
    stream = Duplex(HEADERS, block_first_read=True)
    mid = MidHandshake(WriteThenReadRole(), HandshakeMachine.start_write(stream, b"hello"))
    with pytest.raises(HandshakeInterrupted) as info:
        mid.handshake()
    assert str(info.value) == "Interrupted handshake (WouldBlock)"
    assert info.value.mid_handshake is mid
    headers, tail = info.value.mid_handshake.handshake()
    assert headers.get("Upgrade") == "websocket"
    assert tail == b""
    assert stream.outgoing.getvalue() == b"hello"