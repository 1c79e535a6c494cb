"""
Event channels: where the sequencer sends its events.

The sequencer only knows the `EventChannel` protocol. Transports provide
concrete channels:

- `QueueEventChannel` buffers events for an SSE response generator.
- `WebSocketEventChannel` writes JSON frames to a connected WebSocket.

A channel whose client has gone away keeps accepting events and drops them,
so an in-flight sequence always runs to completion.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from app.streaming.events import StreamEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class EventChannel(Protocol):
    """Outward-facing notification sink for one originating client."""

    async def emit(self, event: StreamEvent) -> None:
        ...


class QueueEventChannel:
    """Buffers events in an asyncio queue until a consumer drains them."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[StreamEvent]] = asyncio.Queue()
        self._closed = False

    async def emit(self, event: StreamEvent) -> None:
        if self._closed:
            logger.debug(f"Dropping {event.event.value} event on closed channel")
            return
        await self._queue.put(event)

    def close(self) -> None:
        """Mark the end of the stream. Idempotent."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class WebSocketEventChannel:
    """Sends each event as one JSON frame on a WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.connected = True

    async def emit(self, event: StreamEvent) -> None:
        if not self.connected or self.websocket.client_state != WebSocketState.CONNECTED:
            self.connected = False
            logger.debug(f"Client gone, dropping {event.event.value} event")
            return
        try:
            await self.websocket.send_json(event.to_dict())
        except (WebSocketDisconnect, RuntimeError) as e:
            # Send after close raises RuntimeError in starlette
            self.connected = False
            logger.info(f"WebSocket closed while sending {event.event.value}: {e}")
