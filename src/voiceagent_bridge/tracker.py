from __future__ import annotations

from typing import Any, Sequence, Type, Union

from pydantic import ValidationError

from voiceagent_bridge.bridge import VoiceAgentBridge
from voiceagent_bridge.codec import to_payload
from voiceagent_bridge.exceptions import EncodeError
from voiceagent_bridge.schemas.envelope import Vector3
from voiceagent_bridge.schemas.events import (
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
)

PositionLike = Union[Vector3, Sequence[float], None]


def _position(value: PositionLike) -> Vector3:
    if value is None:
        return Vector3()
    if isinstance(value, Vector3):
        return value
    x, y, z = value
    return Vector3(x=x, y=y, z=z)


class GameEventTracker:
    """Convenience helpers that build catalog events and send them.

    Each helper stamps ``timestamp`` at call time where the shape has one and
    returns whatever :meth:`VoiceAgentBridge.send_event` returns. Arguments
    that do not fit the shape are reported as ``EncodeError`` through the
    bridge's ``on_error`` rather than raised.
    """

    def __init__(self, bridge: VoiceAgentBridge):
        self.bridge = bridge

    def track_event(self, event: TrackableEvent) -> bool:
        """Send any TrackableEvent, including application-defined shapes."""
        return self.bridge.send_event(event)

    def _track(self, shape: Type[TrackableEvent], **fields: Any) -> bool:
        if "timestamp" in shape.model_fields:
            fields["timestamp"] = format_timestamp()
        try:
            if "position" in fields:
                fields["position"] = _position(fields["position"])
            event = shape(**fields)
        except ValidationError as exc:
            self.bridge.report_error(EncodeError(f"invalid {shape.shape_name} event: {exc.error_count()} error(s): {exc}"))
            return False
        except (TypeError, ValueError) as exc:
            # position that is not a Vector3 or an (x, y, z) sequence
            self.bridge.report_error(EncodeError(f"invalid {shape.shape_name} event: {exc}"))
            return False
        return self.track_event(event)

    def track_level_start(self, level_name: str, difficulty: str = "normal", attempt_number: int = 1) -> bool:
        return self._track(LevelStart, level_name=level_name, difficulty=difficulty, attempt_number=attempt_number)

    def track_level_complete(self, level_name: str, time_taken: float, score: int = 0, perfect_clear: bool = False) -> bool:
        return self._track(
            LevelComplete, level_name=level_name, time_taken=time_taken, score=score, perfect_clear=perfect_clear
        )

    def track_player_action(self, action: str, position: PositionLike = None, intensity: float = 1.0) -> bool:
        return self._track(PlayerAction, action=action, position=position, intensity=intensity)

    def track_score(self, score: int, player_name: str = "", reason: str = "") -> bool:
        return self._track(PlayerScore, score=score, player_name=player_name, reason=reason)

    def track_achievement(self, achievement_id: str, achievement_name: str, description: str = "") -> bool:
        return self._track(
            Achievement, achievement_id=achievement_id, achievement_name=achievement_name, description=description
        )

    def track_interaction(self, object_name: str, interaction_type: str = "use", position: PositionLike = None) -> bool:
        return self._track(
            Interaction, object_name=object_name, interaction_type=interaction_type, position=position
        )

    def track_emotion(self, emotion: str, intensity: float = 0.5, context: str = "") -> bool:
        return self._track(Emotion, emotion=emotion, intensity=intensity, context=context)

    def track_learning_progress(self, topic: str, progress: float, mastery_level: str = "beginner") -> bool:
        return self._track(LearningProgress, topic=topic, progress=progress, mastery_level=mastery_level)

    def track_game_phase(self, phase_name: str, status: str = "started", metadata: str = "") -> bool:
        return self._track(GamePhase, phase_name=phase_name, status=status, metadata=metadata)

    def track_error(self, error_message: str, error_type: str = "gameplay", stack_trace: str = "") -> bool:
        return self._track(GameError, error_message=error_message, error_type=error_type, stack_trace=stack_trace)

    def track_custom_event(self, event_name: str, event_data: Any = None) -> bool:
        """Send data outside the fixed catalog as a ``CustomEvent``.

        ``event_data`` may be a model, dataclass, mapping or scalar; it is
        converted to plain JSON without using its own shape name.
        """
        try:
            data = to_payload(event_data)
        except EncodeError as exc:
            self.bridge.report_error(exc)
            return False
        return self._track(CustomEvent, event_name=event_name, event_data=data)

    # scene and lifecycle notifications are skipped silently while disconnected
    def track_scene_change(self, scene_name: str) -> bool:
        if not self.bridge.is_connected:
            return False
        return self._track(SceneChange, scene_name=scene_name)

    def track_app_lifecycle(self, state: str) -> bool:
        if not self.bridge.is_connected:
            return False
        return self._track(AppLifecycle, state=state)
