"""Streaming events and channels for the chat service."""

from app.streaming.channel import EventChannel, QueueEventChannel, WebSocketEventChannel
from app.streaming.events import (
    AllResponsesCompleteData,
    ErrorCode,
    ErrorData,
    ModelCompleteData,
    ReceiveMessageData,
    StreamEvent,
    StreamEventType,
    chunk_event,
    error_event,
    model_complete_event,
    sequence_complete_event,
)

__all__ = [
    "EventChannel",
    "QueueEventChannel",
    "WebSocketEventChannel",
    "AllResponsesCompleteData",
    "ErrorCode",
    "ErrorData",
    "ModelCompleteData",
    "ReceiveMessageData",
    "StreamEvent",
    "StreamEventType",
    "chunk_event",
    "error_event",
    "model_complete_event",
    "sequence_complete_event",
]
