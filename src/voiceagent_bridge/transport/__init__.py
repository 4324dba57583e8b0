from __future__ import annotations

from voiceagent_bridge.dispatch import Dispatcher
from voiceagent_bridge.transport.base import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    BaseTransport,
    CloseInfo,
)
from voiceagent_bridge.transport.memory import MemoryTransport
from voiceagent_bridge.transport.state import TransportStates, can_transition
from voiceagent_bridge.transport.websocket import WebSocketTransport


def create_transport(name: str | None, dispatcher: Dispatcher, **kwargs) -> BaseTransport:
    n = (name or "websocket").strip().lower()
    if n in ("websocket", "websockets", "ws"):
        return WebSocketTransport(dispatcher, **kwargs)
    if n in ("memory", "mock", "loopback"):
        return MemoryTransport(dispatcher, **kwargs)
    raise ValueError(f"Unknown transport name: {name}")


__all__ = [
    "ABNORMAL_CLOSURE",
    "NORMAL_CLOSURE",
    "BaseTransport",
    "CloseInfo",
    "MemoryTransport",
    "TransportStates",
    "WebSocketTransport",
    "can_transition",
    "create_transport",
]
