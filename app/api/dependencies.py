"""API dependencies: access to the process-wide store and sequencer."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection

from app.persistence.session_store import SessionStore
from app.services.sequencer import ModelSequencer


def get_session_store(connection: HTTPConnection) -> SessionStore:
    """Session store created in the application lifespan."""
    return connection.app.state.session_store


def get_sequencer(connection: HTTPConnection) -> ModelSequencer:
    """Model sequencer created in the application lifespan."""
    return connection.app.state.sequencer


# Dependencies to use in routes (HTTP and WebSocket)
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
SequencerDep = Annotated[ModelSequencer, Depends(get_sequencer)]
