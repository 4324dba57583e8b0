"""Envelope codec: event value <-> ``{"type": ..., "payload": {...}}`` text.

Pure functions, no I/O. The wire type comes from the value's explicit
``shape_name`` tag; the payload is the value's fields as a JSON object with
camelCase keys.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from voiceagent_bridge.exceptions import DecodeError, EncodeError
from voiceagent_bridge.schemas.envelope import Envelope
from voiceagent_bridge.schemas.events import TrackableEvent, get_shape

WireText = Union[str, bytes, bytearray]


def shape_name_of(event: Any) -> str:
    """Return the declared shape name of ``event`` or raise EncodeError."""
    if event is None:
        raise EncodeError("Cannot encode a null event")
    name = getattr(type(event), "shape_name", None)
    if not isinstance(name, str) or not name:
        raise EncodeError(
            f"{type(event).__name__} has no shape name; subclass TrackableEvent "
            "and declare shape_name, or wrap the data in a CustomEvent"
        )
    return name


def to_payload(value: Any) -> Any:
    """Convert any value to plain JSON data, ignoring its shape name.

    Models dump by alias, dataclasses and mappings are walked recursively.
    """
    try:
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json", by_alias=True)
        return to_jsonable_python(value, by_alias=True)
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise EncodeError(f"{type(value).__name__} is not JSON-representable: {exc}") from exc


def build_envelope(event: Any) -> Envelope:
    name = shape_name_of(event)
    payload = to_payload(event)
    if not isinstance(payload, dict):
        raise EncodeError(f"{name} payload must serialize to a JSON object, got {type(payload).__name__}")
    return Envelope(type=name, payload=payload)


def encode(event: Any) -> str:
    """Encode ``event`` as compact envelope text.

    Raises:
        EncodeError: ``event`` is None, carries no shape name, or cannot be
            represented as a JSON object.
    """
    try:
        return build_envelope(event).to_wire()
    except PydanticSerializationError as exc:
        raise EncodeError(f"failed to serialize {type(event).__name__}: {exc}") from exc


def decode(text: WireText) -> Envelope:
    """Parse envelope text. Raises DecodeError on malformed input."""
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"envelope is not valid UTF-8: {exc}") from exc
    try:
        return Envelope.model_validate_json(text)
    except ValidationError as exc:
        raise DecodeError(_describe(exc)) from exc


def decode_event(text: WireText) -> TrackableEvent:
    """Decode envelope text into the registered shape's model."""
    envelope = decode(text)
    model = get_shape(envelope.type)
    if model is None:
        raise DecodeError(f"unknown shape {envelope.type!r}")
    try:
        return model.model_validate(envelope.payload)
    except ValidationError as exc:
        raise DecodeError(f"payload does not match {envelope.type}: {_describe(exc)}") from exc


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)
