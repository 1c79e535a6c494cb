"""Request, response and transcript models for the chat service."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Timezone-aware current time used for all timestamps."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Author of a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"


# =============================================================================
# TRANSCRIPT
# =============================================================================

class Message(BaseModel):
    """A single transcript entry. Immutable once created."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    role: Role
    content: str
    # Only set on assistant messages, identifies which model in the sequence wrote it
    model_id: Optional[str] = Field(default=None, alias="modelId")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str, model_id: str) -> Message:
        return cls(role=Role.ASSISTANT, content=content, model_id=model_id)


# =============================================================================
# MODEL CONFIGURATION
# =============================================================================

class GenerationParameters(BaseModel):
    """Sampling parameters passed to a model backend."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, gt=0, alias="maxTokens")


class ModelDescriptor(BaseModel):
    """
    One backend model and its fixed position in the response sequence.

    Descriptors are built once at startup from settings and never change
    for the lifetime of the process.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Stable identifier, e.g. 'deepseek'")
    model_ref: str = Field(..., alias="modelRef", description="Backend model reference")
    parameters: GenerationParameters = Field(default_factory=GenerationParameters)
    order: int = Field(..., ge=1, description="1-based position in the sequence")
    provider: Optional[str] = Field(
        default=None,
        description="LangChain provider prefix; falls back to the configured default",
    )


# =============================================================================
# API BODIES
# =============================================================================

class SendMessageRequest(BaseModel):
    """Inbound `send_message` payload."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="User's text message")
    # Missing or empty ids are rejected by the sequencer as invalid_session
    session_id: str = Field(default="", alias="sessionId")


class SessionCreateRequest(BaseModel):
    """Request to create a session. The id is generated when omitted."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, min_length=1, alias="sessionId")


class SessionResponse(BaseModel):
    """Summary of a stored session."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    created_at: datetime = Field(..., alias="createdAt")
    last_accessed_at: datetime = Field(..., alias="lastAccessedAt")
    message_count: int = Field(0, alias="messageCount")


class SessionMessagesResponse(BaseModel):
    """Ordered transcript of a session."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    messages: list[Message] = Field(default_factory=list)
