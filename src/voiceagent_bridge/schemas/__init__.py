"""Schemas package for the wire envelope and the trackable event catalog.

Every outbound frame is an :class:`~.envelope.Envelope`; every catalog entry is
a :class:`~.events.TrackableEvent` subclass carrying an explicit shape name.
"""

from .envelope import Envelope, Vector3
from .events import (
    SHAPE_REGISTRY,
    Achievement,
    AppLifecycle,
    CustomEvent,
    Emotion,
    GameError,
    GamePhase,
    Interaction,
    LearningProgress,
    LevelComplete,
    LevelStart,
    PlayerAction,
    PlayerScore,
    SceneChange,
    TrackableEvent,
    format_timestamp,
    get_shape,
)

__all__ = [
    "Envelope",
    "Vector3",
    "SHAPE_REGISTRY",
    "TrackableEvent",
    "format_timestamp",
    "get_shape",
    "Achievement",
    "AppLifecycle",
    "CustomEvent",
    "Emotion",
    "GameError",
    "GamePhase",
    "Interaction",
    "LearningProgress",
    "LevelComplete",
    "LevelStart",
    "PlayerAction",
    "PlayerScore",
    "SceneChange",
]
