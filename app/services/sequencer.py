"""
Sequential multi-model orchestration.

One inbound user message is answered by every configured model, one after
another. Each model sees the user message plus the answers of all models
before it, so model k+1 only starts once model k's answer (or its error
substitute) is in the transcript.

State machine per inbound message:

    IDLE -> VALIDATING -> RUNNING(0..N-1) -> COMPLETED
                 |               |
                 +-> ABORTED <---+

- VALIDATING fails only on an unknown session (`invalid_session`); nothing
  is written and no model is called.
- Backend failures never leave `run_model_step`: they become in-band
  `Error: <reason>` text and the sequence continues.
- Anything else escaping a step is a defect: the run is logged, reported as
  `model_error` and ABORTED without touching the remaining models.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from app.models.chat import Message, ModelDescriptor
from app.persistence.session_store import SessionNotFoundError, SessionStore
from app.services.generator import ERROR_PREFIX, ModelBackendError, ModelResponseGenerator
from app.streaming.channel import EventChannel
from app.streaming.events import (
    ErrorCode,
    chunk_event,
    error_event,
    model_complete_event,
    sequence_complete_event,
)

logger = logging.getLogger(__name__)

INVALID_SESSION_MESSAGE = "Invalid session ID"
PROCESSING_ERROR_MESSAGE = "Error processing your message"
UNKNOWN_ERROR_REASON = "An unknown error occurred"


def empty_response_message(model_id: str) -> str:
    return (
        f"No response was generated from {model_id}. This could be due to an issue "
        f"with the model configuration or the input provided."
    )


class SequenceState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class StepStatus(str, Enum):
    """How a model step produced its content."""

    OK = "ok"
    EMPTY = "empty"  # model ran but said nothing; content is a placeholder
    SOFT_ERROR = "soft_error"  # backend returned error-prefixed text
    FAILED = "failed"  # backend call raised; content is "Error: <reason>"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one model step. Always carries assistant content."""

    model_id: str
    order: int
    content: str
    status: StepStatus = StepStatus.OK


@dataclass
class SequenceResult:
    """Outcome of one inbound message."""

    session_id: str
    state: SequenceState = SequenceState.IDLE
    responses: list[StepResult] = field(default_factory=list)
    model_index: Optional[int] = None

    @property
    def completed(self) -> bool:
        return self.state == SequenceState.COMPLETED


def failure_reason(error: Exception) -> str:
    if isinstance(error, ModelBackendError):
        return error.reason or UNKNOWN_ERROR_REASON
    return str(error) or UNKNOWN_ERROR_REASON


class ModelSequencer:
    """Drives one inbound message through the configured models in order."""

    def __init__(
        self,
        store: SessionStore,
        generator: ModelResponseGenerator,
        descriptors: Iterable[ModelDescriptor],
    ):
        self.store = store
        self.generator = generator
        self.descriptors: tuple[ModelDescriptor, ...] = tuple(
            sorted(descriptors, key=lambda descriptor: descriptor.order)
        )

    async def handle_message(
        self,
        session_id: str,
        message: str,
        channel: EventChannel,
    ) -> SequenceResult:
        """
        Answer one `send_message` with every model in sequence.

        Args:
            session_id: Target session, must already exist in the store
            message: User's text
            channel: Where events for the originating client go

        Returns:
            SequenceResult with the final state and one StepResult per model
            that ran
        """
        result = SequenceResult(session_id=session_id)

        result.state = SequenceState.VALIDATING
        try:
            self.store.get_by_id(session_id)
        except SessionNotFoundError:
            logger.warning(f"Rejected message for unknown session {session_id}")
            result.state = SequenceState.ABORTED
            await channel.emit(error_event(ErrorCode.INVALID_SESSION, INVALID_SESSION_MESSAGE))
            return result

        try:
            self.store.add_message(session_id, Message.user(message))
            # Working transcript: extended locally as each model answers
            transcript = self.store.get_history(session_id)

            for index, descriptor in enumerate(self.descriptors):
                result.state = SequenceState.RUNNING
                result.model_index = index

                step = await self.run_model_step(descriptor, session_id, transcript, channel)

                reply = Message.assistant(step.content, descriptor.id)
                self.store.add_message(session_id, reply)
                transcript.append(reply)
                result.responses.append(step)

                await channel.emit(model_complete_event(descriptor.id, session_id, descriptor.order))

            result.state = SequenceState.COMPLETED
            await channel.emit(sequence_complete_event(session_id))
            logger.info(f"Session {session_id}: all {len(self.descriptors)} model(s) complete")

        except Exception:
            logger.error(
                f"Model sequence aborted for session {session_id} "
                f"at model index {result.model_index}",
                exc_info=True,
            )
            result.state = SequenceState.ABORTED
            await channel.emit(error_event(ErrorCode.MODEL_ERROR, PROCESSING_ERROR_MESSAGE))

        return result

    async def run_model_step(
        self,
        descriptor: ModelDescriptor,
        session_id: str,
        transcript: Sequence[Message],
        channel: EventChannel,
    ) -> StepResult:
        """
        Produce exactly one assistant answer for `descriptor`.

        Backend failures are folded into the returned content; this method
        only raises on defects in the channel or the step itself.
        """

        async def forward(fragment: str) -> None:
            await channel.emit(chunk_event(descriptor.id, fragment, session_id, descriptor.order))

        logger.info(f"Session {session_id}: running model {descriptor.order}:{descriptor.id}")

        try:
            content = await self.generator.generate(descriptor, tuple(transcript), forward)
        except ModelBackendError as e:
            logger.error(f"Error processing model {descriptor.id}: {e}", exc_info=True)
            content = f"{ERROR_PREFIX} {failure_reason(e)}"
            status = StepStatus.FAILED
            await forward(content)
        else:
            status = StepStatus.OK
            if not content or not content.strip():
                logger.warning(f"Empty response from {descriptor.id}")
                content = empty_response_message(descriptor.id)
                status = StepStatus.EMPTY
                await forward(content)
            elif content.startswith(ERROR_PREFIX):
                logger.warning(f"Error response from {descriptor.id}: {content[:200]}")
                status = StepStatus.SOFT_ERROR

        await channel.emit(
            chunk_event(descriptor.id, "", session_id, descriptor.order, is_complete=True)
        )
        logger.info(f"Session {session_id}: model {descriptor.id} finished ({status.value})")
        return StepResult(
            model_id=descriptor.id,
            order=descriptor.order,
            content=content,
            status=status,
        )
