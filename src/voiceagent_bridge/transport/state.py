from __future__ import annotations

from enum import Enum


class TransportStates(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


ALLOWED_TRANSITIONS = {
    # a transport that never opened may still be closed (terminal, one closed callback)
    TransportStates.DISCONNECTED: {TransportStates.CONNECTING, TransportStates.CLOSED},
    # connect failure drops back to DISCONNECTED; close() while connecting goes to CLOSING
    TransportStates.CONNECTING: {TransportStates.OPEN, TransportStates.DISCONNECTED, TransportStates.CLOSING},
    # peer close frame lands directly in CLOSED
    TransportStates.OPEN: {TransportStates.CLOSING, TransportStates.CLOSED},
    TransportStates.CLOSING: {TransportStates.CLOSED},
    TransportStates.CLOSED: set(),
}


def can_transition(from_state: TransportStates | str, to_state: TransportStates | str) -> bool:
    """Return True if a transition from from_state -> to_state is allowed."""
    f = TransportStates(from_state) if not isinstance(from_state, TransportStates) else from_state
    t = TransportStates(to_state) if not isinstance(to_state, TransportStates) else to_state
    return t in ALLOWED_TRANSITIONS.get(f, set())
