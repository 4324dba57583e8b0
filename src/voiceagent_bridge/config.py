from __future__ import annotations

import os
from typing import Any, Dict, Optional

import dotenv
from pydantic import BaseModel, Field, field_validator

# environment variable -> BridgeConfig field
ENV_VARS = {
    "VOICE_AGENT_URL": "agent_url",
    "VOICE_AGENT_AUTO_CONNECT": "auto_connect",
    "VOICE_AGENT_DEBUG": "debug_mode",
    "VOICE_AGENT_TRANSPORT": "transport",
    "VOICE_AGENT_OPEN_TIMEOUT": "open_timeout",
    "VOICE_AGENT_CLOSE_TIMEOUT": "close_timeout",
}


class BridgeConfig(BaseModel):
    """Host-provided settings, fixed at bridge construction."""

    agent_url: str = Field("ws://localhost:8080", description="WebSocket URL of the Voice Agent")
    auto_connect: bool = True
    debug_mode: bool = True
    transport: str = "websocket"
    open_timeout: float = Field(10.0, gt=0)
    close_timeout: float = Field(5.0, gt=0)

    @field_validator("agent_url")
    def _websocket_scheme(cls, v: str):
        v = v.strip()
        if not v.lower().startswith(("ws://", "wss://")):
            raise ValueError("agent_url must start with ws:// or wss://")
        return v


def load_config(env_file: Optional[str] = ".env", **overrides: Any) -> BridgeConfig:
    """Build a BridgeConfig from ``.env``/environment, then explicit overrides.

    Values already present in the process environment are not replaced by
    the file. Raises pydantic.ValidationError on invalid values.
    """
    if env_file:
        dotenv.load_dotenv(env_file)
    values: Dict[str, Any] = {}
    for var, field_name in ENV_VARS.items():
        raw = os.getenv(var)
        if raw is not None and raw != "":
            values[field_name] = raw
    values.update({k: v for k, v in overrides.items() if v is not None})
    return BridgeConfig(**values)
