"""Local stand-in for the Voice Agent: accepts bridge connections and records envelopes.

Run: python -m voiceagent_bridge.listener  (listens on ws://127.0.0.1:8080/ws)
"""

from __future__ import annotations

import os
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from voiceagent_bridge import codec
from voiceagent_bridge.exceptions import DecodeError
from voiceagent_bridge.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)


class EventLog:
    """Bounded in-memory record of received envelopes."""

    def __init__(self, maxlen: int = 1000):
        self._items: Deque[Dict[str, Any]] = deque(maxlen=int(maxlen))
        self.rejected = 0

    def add(self, envelope, client: str) -> Dict[str, Any]:
        item = {
            "type": envelope.type,
            "payload": envelope.payload,
            "client": client,
            "received_at": datetime.now(timezone.utc).isoformat(),
        }
        self._items.append(item)
        return item

    def list(self) -> List[Dict[str, Any]]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()
        self.rejected = 0

    def __len__(self) -> int:
        return len(self._items)


app = FastAPI(title="voice-agent-listener", version="0.1.0")
events = EventLog(maxlen=int(os.environ.get("VOICE_AGENT_LISTENER_MAXLEN", "1000")))


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/events")
async def list_events():
    return {"count": len(events), "rejected": events.rejected, "events": events.list()}


@app.delete("/events")
async def clear_events():
    events.clear()
    return {"ok": True}


@app.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
    await websocket.accept()
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    logger.info("bridge connected from %s", client)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                envelope = codec.decode(text)
            except DecodeError as exc:
                events.rejected += 1
                logger.debug("rejected frame from %s: %s", client, exc)
                await websocket.send_json({"type": "error", "payload": {"message": str(exc)}})
                continue
            events.add(envelope, client)
            logger.debug("event %s from %s: %s", envelope.type, client, envelope.payload)
    except WebSocketDisconnect:
        logger.info("bridge disconnected (socket closed) from %s", client)


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.environ.get("VOICE_AGENT_LISTENER_HOST", "127.0.0.1"),
        port=int(os.environ.get("VOICE_AGENT_LISTENER_PORT", "8080")),
    )
