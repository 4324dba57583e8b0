from __future__ import annotations

from typing import List, Optional

from voiceagent_bridge.dispatch import Dispatcher
from voiceagent_bridge.exceptions import ConnectError, SendError
from voiceagent_bridge.transport.base import NORMAL_CLOSURE, BaseTransport, CloseInfo, Frame
from voiceagent_bridge.transport.state import TransportStates
from voiceagent_bridge.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)


class MemoryTransport(BaseTransport):
    """In-process loopback transport for local dev, offline hosts and tests.

    Connecting succeeds immediately (unless ``fail_connect`` is set) and every
    sent frame is recorded in ``sent``. ``inject`` and ``peer_close`` simulate
    the remote side; like the network transport, all of them are delivered
    through the dispatcher. With ``echo=True`` each sent frame comes back as an
    inbound message.
    """

    def __init__(self, dispatcher: Dispatcher, echo: bool = False, fail_connect: Optional[str] = None, **_ignored):
        super().__init__(dispatcher)
        self.echo = echo
        self.fail_connect = fail_connect
        self.sent: List[Frame] = []
        self.connect_calls = 0

    def connect(self, url: str) -> None:
        self.connect_calls += 1
        with self._state_lock:
            if self._state in (TransportStates.CONNECTING, TransportStates.OPEN):
                return
            if self._state is not TransportStates.DISCONNECTED:
                refused = ConnectError(f"transport is {self._state.value}; create a new transport to reconnect")
            elif self.fail_connect:
                refused = ConnectError(f"Connection failed: {self.fail_connect}")
            else:
                refused = None
                self.url = url
                self._transition_locked(TransportStates.CONNECTING)
                self._transition_locked(TransportStates.OPEN)
        if refused is not None:
            self._emit_error(refused)
            return
        logger.debug("memory transport open for %s", url)
        self._emit_opened()

    def send(self, data: Frame, is_binary: bool = False) -> None:
        if not self.is_open:
            self._emit_error(SendError("Cannot send: Not connected"))
            return
        self.sent.append(data)
        if self.echo:
            self._emit_message(data)

    def close(self) -> None:
        with self._state_lock:
            if self._state in (TransportStates.CLOSING, TransportStates.CLOSED):
                return
            was_open = self._state is TransportStates.OPEN
            if was_open:
                self._transition_locked(TransportStates.CLOSING)
        self._finish_close(CloseInfo(NORMAL_CLOSURE, "Closing" if was_open else "closed before open"))

    # -- remote side ---------------------------------------------------------
    def inject(self, frame: Frame) -> None:
        """Deliver ``frame`` as if the listener had sent it."""
        if self.is_open:
            self._emit_message(frame)

    def peer_close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        if self.is_open:
            self._finish_close(CloseInfo(code, reason))
