"""Pydantic models for the chat service."""

from app.models.chat import (
    GenerationParameters,
    Message,
    ModelDescriptor,
    Role,
    SendMessageRequest,
    SessionCreateRequest,
    SessionMessagesResponse,
    SessionResponse,
)

__all__ = [
    "GenerationParameters",
    "Message",
    "ModelDescriptor",
    "Role",
    "SendMessageRequest",
    "SessionCreateRequest",
    "SessionMessagesResponse",
    "SessionResponse",
]
