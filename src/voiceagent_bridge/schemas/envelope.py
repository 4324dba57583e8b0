from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Vector3(BaseModel):
    """Fixed 3-component position, serialized as ``{"x":_,"y":_,"z":_}``."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Envelope(BaseModel):
    """The wire wrapper around any event value.

    Produced by the codec, serialized, and discarded. ``type`` is the shape
    name of the wrapped value and never empty; ``payload`` is an open JSON
    object (a missing payload on the inbound side reads as ``{}``).
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    def _type_not_blank(cls, v: str):
        if not v.strip():
            raise ValueError("envelope type must not be blank")
        return v

    def to_wire(self) -> str:
        """Compact JSON text: ``{"type":"<name>","payload":{...}}``."""
        return self.model_dump_json()
