"""WebSocket endpoint carrying the run command/event protocol.

Frames in both directions are JSON objects ``{"event": ..., "data": ...}``.
Clients send ``start``, ``stdin`` and ``stop``; the server answers with
``run`` events.
"""

from __future__ import annotations

import asyncio
import json
import logging
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from pal_runner.models.events import RunEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["run"])

RUN_EVENT = "run"


class WebSocketConnection:
    """A connected client; serialises sends from concurrent tasks."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.connection_id = uuid4().hex[:12]
        self._send_lock = asyncio.Lock()
        self.closed = False

    async def send(self, event: RunEvent) -> None:
        if self.closed:
            return
        async with self._send_lock:
            try:
                await self.websocket.send_json({"event": RUN_EVENT, "data": event.to_wire()})
            except (WebSocketDisconnect, RuntimeError) as exc:
                # Starlette raises RuntimeError once the socket is closed.
                logger.debug("Dropping event for closed connection %s: %s", self.connection_id, exc)
                self.closed = True

    def __repr__(self) -> str:
        return f"<WebSocketConnection {self.connection_id}>"


def _parse_frame(text: str) -> tuple[str, object] | None:
    try:
        frame = json.loads(text)
    except ValueError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")


def _frame_text(message: dict) -> str | None:
    """Text of a received frame; binary frames must be UTF-8 JSON."""
    if message.get("text") is not None:
        return message["text"]
    payload = message.get("bytes")
    if payload is None:
        return None
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return None


@router.websocket("/ws")
async def run_socket(websocket: WebSocket) -> None:
    """Accept a client and feed its commands to the session dispatcher."""
    dispatcher = websocket.app.state.dispatcher
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    logger.info("Connection %s opened", connection.connection_id)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = _frame_text(message)
            parsed = _parse_frame(text) if text is not None else None
            if parsed is None:
                await connection.send(RunEvent.error(400))
                continue
            command, data = parsed
            dispatcher.dispatch(connection, command, data)
    except WebSocketDisconnect:
        pass
    finally:
        connection.closed = True
        dispatcher.disconnect(connection)
        logger.info("Connection %s closed", connection.connection_id)
