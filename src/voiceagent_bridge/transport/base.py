"""Transport contract shared by the WebSocket and in-memory implementations.

A transport never invokes consumer code directly: every lifecycle signal and
inbound frame is wrapped in an action and handed to the :class:`Dispatcher`,
so the ``opened``/``message``/``error``/``closed`` hooks fire only inside
``tick()``.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from voiceagent_bridge.dispatch import Broadcast, Dispatcher
from voiceagent_bridge.exceptions import BridgeError, CloseError
from voiceagent_bridge.transport.state import TransportStates, can_transition
from voiceagent_bridge.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

Frame = Union[str, bytes]


@dataclass(frozen=True)
class CloseInfo:
    """Why the connection reached CLOSED."""

    code: int
    reason: str = ""
    error: Optional[CloseError] = None

    @property
    def clean(self) -> bool:
        return self.error is None and self.code == NORMAL_CLOSURE


class BaseTransport(ABC):
    """State machine plus hook plumbing; subclasses supply the I/O."""

    def __init__(self, dispatcher: Dispatcher):
        self._dispatcher = dispatcher
        self._state = TransportStates.DISCONNECTED
        self._state_lock = threading.Lock()
        self._closed_emitted = False
        self.url: Optional[str] = None

        self.opened = Broadcast("opened")
        self.message = Broadcast("message")
        self.error = Broadcast("error")
        self.closed = Broadcast("closed")

    # -- state ---------------------------------------------------------------
    @property
    def state(self) -> TransportStates:
        with self._state_lock:
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state is TransportStates.OPEN

    def _transition(self, to_state: TransportStates) -> bool:
        with self._state_lock:
            return self._transition_locked(to_state)

    def _transition_locked(self, to_state: TransportStates) -> bool:
        if self._state is to_state:
            return True
        if not can_transition(self._state, to_state):
            logger.debug("ignoring transport transition %s -> %s", self._state.value, to_state.value)
            return False
        logger.debug("transport %s -> %s (%s)", self._state.value, to_state.value, self.url)
        self._state = to_state
        return True

    # -- hand-off to the dispatch thread ------------------------------------
    def _emit_opened(self) -> None:
        self._dispatcher.enqueue(self.opened.emit)

    def _emit_message(self, frame: Frame) -> None:
        self._dispatcher.enqueue(lambda: self.message.emit(frame))

    def _emit_error(self, err: BridgeError) -> None:
        logger.debug("transport error queued: %s", err)
        self._dispatcher.enqueue(lambda: self.error.emit(err))

    def _finish_close(self, info: CloseInfo) -> bool:
        """Move to CLOSED and queue the single ``closed`` callback.

        Returns False if ``closed`` was already queued for this transport.
        """
        with self._state_lock:
            if self._closed_emitted:
                return False
            self._closed_emitted = True
            self._state = TransportStates.CLOSED
        logger.debug("transport closed code=%s reason=%r error=%s", info.code, info.reason, info.error)
        self._dispatcher.enqueue(lambda: self.closed.emit(info))
        return True

    # -- operations ----------------------------------------------------------
    @abstractmethod
    def connect(self, url: str) -> None:
        """Start connecting to ``url``; completion is reported via hooks."""

    @abstractmethod
    def send(self, data: Frame, is_binary: bool = False) -> None:
        """Queue one frame for writing; never blocks the caller."""

    @abstractmethod
    def close(self) -> None:
        """Start an orderly close; always ends with one ``closed`` callback."""
