"""Streaming chat endpoint with SSE for real-time model output."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from app.api.dependencies import SequencerDep
from app.models.chat import SendMessageRequest
from app.services.sequencer import ModelSequencer
from app.streaming.channel import QueueEventChannel

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])

# Sequence runs outlive a disconnected client; hold references until they finish
_background_runs: set[asyncio.Task] = set()


async def sse_event_generator(
    request: SendMessageRequest,
    sequencer: ModelSequencer,
) -> AsyncGenerator[str, None]:
    """
    Generate SSE events while the models answer one message.

    The sequence runs in its own task and writes into a queue channel; this
    generator drains the queue. If the client disconnects the task keeps
    running and its remaining events are dropped.

    Yields:
        SSE-formatted strings for streaming response
    """
    channel = QueueEventChannel()

    async def run_sequence() -> None:
        try:
            await sequencer.handle_message(request.session_id, request.message, channel)
        finally:
            channel.close()

    task = asyncio.create_task(run_sequence())
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)

    try:
        async for event in channel:
            yield event.to_sse_string()

    except asyncio.CancelledError:
        logger.info(f"SSE stream cancelled by client disconnect (session {request.session_id})")
        channel.close()
        raise


@router.post("/stream")
async def chat_stream(request: SendMessageRequest, sequencer: SequencerDep) -> StreamingResponse:
    """
    Stream every configured model's answer via Server-Sent Events.

    Models answer one after another; each sees the answers before it.

    ## Event Types

    - `receive_message`: A chunk of a model's answer (`isComplete: true` marks the end)
    - `model_complete`: One model finished
    - `all_responses_complete`: Every model finished
    - `error`: `invalid_session` or `model_error`

    ## Example Usage

    ```javascript
    const response = await fetch('/chat/stream', {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify({ message: 'hi', sessionId: 's1' })
    });
    ```
    """
    return StreamingResponse(
        sse_event_generator(request, sequencer),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@router.get("/stream/health")
async def stream_health(sequencer: SequencerDep) -> dict:
    """Health check for the streaming endpoint."""
    return {
        "status": "healthy",
        "service": "sequential-chat-stream",
        "models": [
            {"id": d.id, "modelRef": d.model_ref, "order": d.order}
            for d in sequencer.descriptors
        ],
    }
