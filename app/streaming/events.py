"""Event models emitted to the client while a message is being answered."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


class StreamEventType(str, Enum):
    """Outbound event names, shared by the WebSocket and SSE transports."""

    RECEIVE_MESSAGE = "receive_message"
    MODEL_COMPLETE = "model_complete"
    ALL_RESPONSES_COMPLETE = "all_responses_complete"
    ERROR = "error"


class ErrorCode(str, Enum):
    """Protocol-level error codes."""

    INVALID_SESSION = "invalid_session"
    MODEL_ERROR = "model_error"


class _EventData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReceiveMessageData(_EventData):
    """Data for receive_message events (one streamed chunk)."""

    model_id: str = Field(..., alias="modelId")
    message: str
    is_complete: bool = Field(False, alias="isComplete")
    session_id: str = Field(..., alias="sessionId")
    order: int


class ModelCompleteData(_EventData):
    """Data for model_complete events."""

    model_id: str = Field(..., alias="modelId")
    session_id: str = Field(..., alias="sessionId")
    order: int


class AllResponsesCompleteData(_EventData):
    """Data for all_responses_complete events."""

    session_id: str = Field(..., alias="sessionId")


class ErrorData(_EventData):
    """Data for error events."""

    code: ErrorCode
    message: str


EventData = Union[ReceiveMessageData, ModelCompleteData, AllResponsesCompleteData, ErrorData]


class StreamEvent(BaseModel):
    """Generic event wrapper."""

    event: StreamEventType
    data: EventData

    def to_dict(self) -> dict[str, Any]:
        """Wire form: {"event": <type>, "data": {camelCase payload}}."""
        return {
            "event": self.event.value,
            "data": self.data.model_dump(mode="json", by_alias=True),
        }

    def to_sse_string(self) -> str:
        """Format as SSE string for streaming response."""
        data_str = json.dumps(self.data.model_dump(mode="json", by_alias=True))
        return f"event: {self.event.value}\ndata: {data_str}\n\n"


# =============================================================================
# CONSTRUCTORS
# =============================================================================

def chunk_event(
    model_id: str,
    message: str,
    session_id: str,
    order: int,
    is_complete: bool = False,
) -> StreamEvent:
    return StreamEvent(
        event=StreamEventType.RECEIVE_MESSAGE,
        data=ReceiveMessageData(
            model_id=model_id,
            message=message,
            is_complete=is_complete,
            session_id=session_id,
            order=order,
        ),
    )


def model_complete_event(model_id: str, session_id: str, order: int) -> StreamEvent:
    return StreamEvent(
        event=StreamEventType.MODEL_COMPLETE,
        data=ModelCompleteData(model_id=model_id, session_id=session_id, order=order),
    )


def sequence_complete_event(session_id: str) -> StreamEvent:
    return StreamEvent(
        event=StreamEventType.ALL_RESPONSES_COMPLETE,
        data=AllResponsesCompleteData(session_id=session_id),
    )


def error_event(code: ErrorCode, message: str) -> StreamEvent:
    return StreamEvent(event=StreamEventType.ERROR, data=ErrorData(code=code, message=message))
