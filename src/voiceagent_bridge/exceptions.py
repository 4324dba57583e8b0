"""Error taxonomy for the bridge.

Transport faults are never raised across threads: they are wrapped in one of
these classes and delivered to ``on_error`` subscribers from ``tick()``. Only
the codec raises them directly to its caller.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error the bridge reports."""


class ConnectError(BridgeError):
    """The connection could not be established (DNS, TCP, TLS or handshake)."""


class SendError(BridgeError):
    """A frame was submitted while not open, or the underlying write failed."""


class ReceiveError(BridgeError):
    """The background receive activity hit a transport-level fault."""


class CloseError(BridgeError):
    """The close handshake failed or timed out. The transport still ends up closed."""


class EncodeError(BridgeError):
    """An event value cannot be represented as an envelope."""


class DecodeError(BridgeError):
    """Inbound text is not a well-formed envelope."""


class NotConnectedError(BridgeError):
    """A send was attempted through the facade while not connected."""
