"""WebSocket chat endpoint.

Inbound frames:  {"event": "send_message", "data": {"message": ..., "sessionId": ...}}
Outbound frames: {"event": <event type>, "data": {...}}
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.api.dependencies import SequencerDep
from app.models.chat import SendMessageRequest
from app.streaming.channel import WebSocketEventChannel
from app.streaming.events import ErrorCode, error_event

logger = logging.getLogger(__name__)
router = APIRouter(tags=["chat"])

SEND_MESSAGE = "send_message"


def parse_send_message(raw: str) -> SendMessageRequest:
    """
    Parse one inbound frame.

    Raises:
        ValueError: if the frame is not a well-formed send_message event
    """
    try:
        frame: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Frame is not valid JSON: {e.msg}") from e

    if not isinstance(frame, dict) or frame.get("event") != SEND_MESSAGE:
        raise ValueError(f"Unsupported event, expected '{SEND_MESSAGE}'")

    try:
        return SendMessageRequest.model_validate(frame.get("data") or {})
    except ValidationError as e:
        raise ValueError(f"Invalid {SEND_MESSAGE} payload: {e.error_count()} error(s)") from e


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, sequencer: SequencerDep) -> None:
    """Answer each send_message frame with every model, in order."""
    await websocket.accept()
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    logger.info(f"Client connected: {client}")

    channel = WebSocketEventChannel(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                request = parse_send_message(raw)
            except ValueError as e:
                logger.warning(f"Rejected frame from {client}: {e}")
                await channel.emit(error_event(ErrorCode.MODEL_ERROR, str(e)))
                continue

            await sequencer.handle_message(request.session_id, request.message, channel)

            if not channel.connected:
                break

    except WebSocketDisconnect:
        pass

    logger.info(f"Client disconnected: {client}")
