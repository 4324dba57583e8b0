import socket

import pytest

from conftest import Fault, FakeConnector, PeerClose, wait_for
from voiceagent_bridge.exceptions import CloseError, ConnectError, ReceiveError, SendError
from voiceagent_bridge.transport import (
    MemoryTransport,
    TransportStates,
    WebSocketTransport,
    can_transition,
    create_transport,
)


class Recorder:
    """Collects every hook of a transport."""

    def __init__(self, transport):
        self.opened = []
        self.messages = []
        self.errors = []
        self.closed = []
        transport.opened.subscribe(lambda: self.opened.append(True))
        transport.message.subscribe(self.messages.append)
        transport.error.subscribe(self.errors.append)
        transport.closed.subscribe(self.closed.append)


def open_transport(dispatcher, transport, url="ws://agent.test:8080"):
    rec = Recorder(transport)
    transport.connect(url)
    assert dispatcher.run_until(lambda: rec.opened, timeout=2.0)
    return rec


# -- state table -----------------------------------------------------------
def test_allowed_transitions():
    S = TransportStates
    assert can_transition(S.DISCONNECTED, S.CONNECTING)
    assert can_transition(S.CONNECTING, S.OPEN)
    assert can_transition(S.CONNECTING, S.DISCONNECTED)
    assert can_transition(S.OPEN, S.CLOSING)
    assert can_transition(S.OPEN, S.CLOSED)
    assert can_transition(S.CLOSING, S.CLOSED)
    assert not can_transition(S.CLOSED, S.CONNECTING)
    assert not can_transition(S.DISCONNECTED, S.OPEN)
    assert not can_transition(S.CLOSING, S.OPEN)


def test_create_transport_by_name(dispatcher):
    assert isinstance(create_transport("websocket", dispatcher), WebSocketTransport)
    assert isinstance(create_transport(None, dispatcher), WebSocketTransport)
    assert isinstance(create_transport("Memory", dispatcher, echo=True), MemoryTransport)
    with pytest.raises(ValueError):
        create_transport("carrier-pigeon", dispatcher)


# -- websocket transport ---------------------------------------------------
def test_opened_is_delivered_only_by_tick(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    rec = Recorder(t)
    assert t.state is TransportStates.DISCONNECTED

    t.connect("ws://agent.test:8080")
    assert wait_for(lambda: t.is_open)
    assert rec.opened == []

    dispatcher.tick()
    assert rec.opened == [True]
    url, kwargs = connector.calls[0]
    assert url == "ws://agent.test:8080"
    assert kwargs == {"open_timeout": 1.0, "close_timeout": 1.0}


def test_connect_while_connecting_or_open_is_noop(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    open_transport(dispatcher, t)
    t.connect("ws://agent.test:8080")
    dispatcher.tick()
    assert len(connector.calls) == 1


def test_connect_failure_reports_connect_error(dispatcher, make_ws_transport):
    t = make_ws_transport(FakeConnector(error=OSError("connection refused")))
    rec = Recorder(t)
    t.connect("ws://agent.test:8080")
    assert dispatcher.run_until(lambda: rec.errors, timeout=2.0)
    assert t.join(2.0)

    assert isinstance(rec.errors[0], ConnectError)
    assert "connection refused" in str(rec.errors[0])
    assert rec.opened == []
    assert t.state is TransportStates.DISCONNECTED


def test_send_when_not_open_reports_send_error(dispatcher, make_ws_transport):
    t = make_ws_transport()
    rec = Recorder(t)
    t.send("hello")
    dispatcher.tick()
    assert len(rec.errors) == 1
    assert isinstance(rec.errors[0], SendError)


def test_frames_written_in_send_order(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    open_transport(dispatcher, t)

    t.send("a")
    t.send("b")
    t.send(b"\x00\x01", is_binary=True)
    t.send(b"text-as-bytes")
    assert wait_for(lambda: len(connector.socket.sent) == 4)
    assert connector.socket.sent == ["a", "b", b"\x00\x01", "text-as-bytes"]


def test_inbound_frames_delivered_in_arrival_order(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    rec = open_transport(dispatcher, t)

    frames = [f'{{"type":"Hint","payload":{{"n":{i}}}}}' for i in range(20)]
    for f in frames:
        connector.socket.feed(f)
    assert dispatcher.run_until(lambda: len(rec.messages) == len(frames), timeout=2.0)
    assert rec.messages == frames


def test_write_failure_reports_send_error(dispatcher, make_ws_transport):
    connector = FakeConnector(fail_send=RuntimeError("pipe broke"))
    t = make_ws_transport(connector)
    rec = open_transport(dispatcher, t)
    t.send("x")
    assert dispatcher.run_until(lambda: rec.errors, timeout=2.0)
    assert isinstance(rec.errors[0], SendError)
    assert t.is_open


def test_local_close_flushes_and_closes_once(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    rec = open_transport(dispatcher, t)

    t.send("last words")
    t.close()
    assert t.state in (TransportStates.CLOSING, TransportStates.CLOSED)
    assert dispatcher.run_until(lambda: rec.closed, timeout=2.0)
    assert t.join(2.0)

    assert connector.socket.sent == ["last words"]
    assert connector.socket.close_calls == 1
    info = rec.closed[0]
    assert info.code == 1000
    assert info.clean
    assert t.state is TransportStates.CLOSED

    # further closes are no-ops
    t.close()
    dispatcher.tick()
    assert len(rec.closed) == 1


def test_peer_close_reports_peer_code(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    rec = open_transport(dispatcher, t)

    connector.socket.feed(PeerClose(1001, "going away"))
    assert dispatcher.run_until(lambda: rec.closed, timeout=2.0)
    assert t.join(2.0)
    assert rec.closed[0].code == 1001
    assert rec.closed[0].reason == "going away"
    assert t.state is TransportStates.CLOSED

    t.close()
    dispatcher.tick()
    assert len(rec.closed) == 1


def test_close_handshake_timeout_still_closes_once(dispatcher, make_ws_transport):
    connector = FakeConnector(close_delay=5.0)
    t = make_ws_transport(connector, close_timeout=0.1)
    rec = open_transport(dispatcher, t)

    t.close()
    assert dispatcher.run_until(lambda: rec.closed, timeout=3.0)
    assert t.join(2.0)

    info = rec.closed[0]
    assert info.code == 1006
    assert isinstance(info.error, CloseError)
    assert not info.clean
    dispatcher.run_until(lambda: False, timeout=0.1)
    assert len(rec.closed) == 1
    assert t.state is TransportStates.CLOSED


def test_no_message_after_close_requested(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    rec = open_transport(dispatcher, t)
    order = []
    t.message.subscribe(lambda m: order.append(("message", m)))
    t.error.subscribe(lambda e: order.append(("error", e)))
    t.closed.subscribe(lambda info: order.append(("closed", info)))

    connector.socket.feed("early")
    assert dispatcher.run_until(lambda: rec.messages, timeout=2.0)

    t.close()
    connector.socket.feed("late")
    assert dispatcher.run_until(lambda: rec.closed, timeout=2.0)
    assert t.join(2.0)
    dispatcher.run_until(lambda: False, timeout=0.1)

    assert rec.messages == ["early"]
    assert order[-1][0] == "closed"
    assert [kind for kind, _ in order].count("closed") == 1
    assert rec.errors == []


def test_receive_fault_reports_error_and_keeps_state(dispatcher, make_ws_transport):
    connector = FakeConnector()
    t = make_ws_transport(connector)
    rec = open_transport(dispatcher, t)

    connector.socket.feed(Fault(RuntimeError("garbled frame")))
    assert dispatcher.run_until(lambda: rec.errors, timeout=2.0)
    assert isinstance(rec.errors[0], ReceiveError)
    assert t.state is TransportStates.OPEN
    assert rec.closed == []

    t.close()
    assert dispatcher.run_until(lambda: rec.closed, timeout=2.0)
    assert len(rec.closed) == 1


def test_close_before_connect(dispatcher, make_ws_transport):
    t = make_ws_transport()
    rec = Recorder(t)
    t.close()
    dispatcher.tick()
    assert len(rec.closed) == 1
    assert rec.closed[0].reason == "closed before open"
    assert t.state is TransportStates.CLOSED

    # a closed transport is not reused
    t.connect("ws://agent.test:8080")
    dispatcher.tick()
    assert isinstance(rec.errors[0], ConnectError)


def test_real_connector_refused(dispatcher):
    # grab a free port, then release it so nothing listens there
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()

    t = WebSocketTransport(dispatcher, open_timeout=2.0)
    rec = Recorder(t)
    t.connect(f"ws://127.0.0.1:{port}")
    assert dispatcher.run_until(lambda: rec.errors, timeout=5.0)
    assert t.join(5.0)
    assert isinstance(rec.errors[0], ConnectError)
    assert t.state is TransportStates.DISCONNECTED


# -- memory transport ------------------------------------------------------
def test_memory_transport_lifecycle(dispatcher):
    t = MemoryTransport(dispatcher, echo=True)
    rec = Recorder(t)
    t.connect("ws://memory")
    assert t.is_open
    assert rec.opened == []
    dispatcher.tick()
    assert rec.opened == [True]

    t.send("ping")
    assert t.sent == ["ping"]
    dispatcher.tick()
    assert rec.messages == ["ping"]

    t.inject("from agent")
    t.peer_close(4000, "bye")
    dispatcher.tick()
    assert rec.messages == ["ping", "from agent"]
    assert rec.closed[0].code == 4000

    t.send("late")
    dispatcher.tick()
    assert isinstance(rec.errors[-1], SendError)
    assert t.sent == ["ping"]


def test_memory_transport_fail_connect(dispatcher):
    t = MemoryTransport(dispatcher, fail_connect="agent offline")
    rec = Recorder(t)
    t.connect("ws://memory")
    dispatcher.tick()
    assert isinstance(rec.errors[0], ConnectError)
    assert t.state is TransportStates.DISCONNECTED
