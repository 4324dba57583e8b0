"""Typed event bridge from a client application to a Voice Agent listener.

Events are pydantic models with an explicit shape name; the bridge wraps them
as ``{"type": <shape>, "payload": {...}}`` and sends them over a WebSocket.
Callbacks from the network thread are delivered by ``VoiceAgentBridge.tick()``.
"""

from voiceagent_bridge.bridge import VoiceAgentBridge
from voiceagent_bridge.codec import build_envelope, decode, decode_event, encode, to_payload
from voiceagent_bridge.config import BridgeConfig, load_config
from voiceagent_bridge.dispatch import Broadcast, Dispatcher
from voiceagent_bridge.exceptions import (
    BridgeError,
    CloseError,
    ConnectError,
    DecodeError,
    EncodeError,
    NotConnectedError,
    ReceiveError,
    SendError,
)
from voiceagent_bridge.schemas import Envelope, TrackableEvent, Vector3
from voiceagent_bridge.tracker import GameEventTracker
from voiceagent_bridge.transport import CloseInfo, TransportStates

__version__ = "0.1.0"

__all__ = [
    "VoiceAgentBridge",
    "GameEventTracker",
    "BridgeConfig",
    "load_config",
    "Dispatcher",
    "Broadcast",
    "Envelope",
    "TrackableEvent",
    "Vector3",
    "CloseInfo",
    "TransportStates",
    "encode",
    "decode",
    "decode_event",
    "build_envelope",
    "to_payload",
    "BridgeError",
    "CloseError",
    "ConnectError",
    "DecodeError",
    "EncodeError",
    "NotConnectedError",
    "ReceiveError",
    "SendError",
]
