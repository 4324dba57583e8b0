from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from voiceagent_bridge.schemas.envelope import Vector3

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# shape name -> model class, filled as TrackableEvent subclasses are defined
SHAPE_REGISTRY: Dict[str, Type["TrackableEvent"]] = {}


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Local wall-clock time as ``YYYY-MM-DD HH:MM:SS``."""
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


def get_shape(name: str) -> Optional[Type["TrackableEvent"]]:
    return SHAPE_REGISTRY.get(name)


class TrackableEvent(BaseModel):
    """Base class for every event value the bridge can send.

    Subclasses declare ``shape_name``; that constant, not the Python class
    name, becomes the envelope ``type``. Fields are written snake_case in
    Python and appear camelCase on the wire (``level_name`` -> ``levelName``).

    To add a game-specific event::

        class BossEncounter(TrackableEvent):
            shape_name: ClassVar[str] = "BossEncounter"
            boss_name: str
            boss_level: int = 1
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    shape_name: ClassVar[str] = ""

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        name = cls.__dict__.get("shape_name")
        if not name:
            # abstract intermediate class or a subclass reusing its parent's shape
            return
        existing = SHAPE_REGISTRY.get(name)
        if existing is not None and existing is not cls:
            raise ValueError(f"shape name {name!r} already registered by {existing.__qualname__}")
        SHAPE_REGISTRY[name] = cls


class LevelStart(TrackableEvent):
    shape_name: ClassVar[str] = "LevelStart"
    level_name: str
    difficulty: str = "normal"
    attempt_number: int = Field(1, ge=1)
    timestamp: str = Field(default_factory=format_timestamp)


class LevelComplete(TrackableEvent):
    shape_name: ClassVar[str] = "LevelComplete"
    level_name: str
    time_taken: float = Field(..., ge=0.0, description="Seconds spent in the level")
    score: int = 0
    perfect_clear: bool = False


class PlayerAction(TrackableEvent):
    shape_name: ClassVar[str] = "PlayerAction"
    action: str
    position: Vector3 = Field(default_factory=Vector3)
    intensity: float = 1.0
    timestamp: str = Field(default_factory=format_timestamp)


class PlayerScore(TrackableEvent):
    shape_name: ClassVar[str] = "PlayerScore"
    score: int
    player_name: str = ""
    reason: str = ""
    timestamp: str = Field(default_factory=format_timestamp)


class Achievement(TrackableEvent):
    shape_name: ClassVar[str] = "Achievement"
    achievement_id: str
    achievement_name: str
    description: str = ""
    timestamp: str = Field(default_factory=format_timestamp)


class Interaction(TrackableEvent):
    shape_name: ClassVar[str] = "Interaction"
    object_name: str
    interaction_type: str = "use"
    position: Vector3 = Field(default_factory=Vector3)
    timestamp: str = Field(default_factory=format_timestamp)


class Emotion(TrackableEvent):
    shape_name: ClassVar[str] = "Emotion"
    emotion: str
    intensity: float = Field(0.5, ge=0.0, le=1.0)
    context: str = ""
    timestamp: str = Field(default_factory=format_timestamp)


class LearningProgress(TrackableEvent):
    shape_name: ClassVar[str] = "LearningProgress"
    topic: str
    progress: float = Field(..., ge=0.0, le=1.0)
    mastery_level: str = "beginner"
    timestamp: str = Field(default_factory=format_timestamp)


class GamePhase(TrackableEvent):
    shape_name: ClassVar[str] = "GamePhase"
    phase_name: str
    status: str = "started"
    metadata: str = ""
    timestamp: str = Field(default_factory=format_timestamp)


class SceneChange(TrackableEvent):
    shape_name: ClassVar[str] = "SceneChange"
    scene_name: str
    timestamp: str = Field(default_factory=format_timestamp)


class AppLifecycle(TrackableEvent):
    shape_name: ClassVar[str] = "AppLifecycle"
    # e.g. "started", "paused", "resumed", "quit"
    state: str
    timestamp: str = Field(default_factory=format_timestamp)


class GameError(TrackableEvent):
    """Gameplay or runtime error report. Named ``Error`` on the wire."""

    shape_name: ClassVar[str] = "Error"
    error_message: str
    error_type: str = "gameplay"
    stack_trace: str = ""
    timestamp: str = Field(default_factory=format_timestamp)


class CustomEvent(TrackableEvent):
    """Fallback for events outside the fixed catalog.

    ``event_data`` holds any JSON value and is embedded as-is in the payload,
    never as an escaped JSON string.
    """

    shape_name: ClassVar[str] = "CustomEvent"
    event_name: str = Field(..., min_length=1)
    event_data: Any = None
    timestamp: str = Field(default_factory=format_timestamp)
