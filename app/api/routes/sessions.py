"""Session management API endpoints.

Provides REST endpoints for:
- Creating a session (optionally with a caller-supplied id)
- Getting session details
- Getting the session transcript
- Deleting a session
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Response, status

from app.api.dependencies import SessionStoreDep
from app.models.chat import SessionCreateRequest, SessionMessagesResponse, SessionResponse
from app.persistence.session_store import Session, SessionNotFoundError, SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sessions", tags=["sessions"])


def to_session_response(session: Session) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        created_at=session.created_at,
        last_accessed_at=session.last_accessed_at,
        message_count=len(session.messages),
    )


def require_session(store: SessionStore, session_id: str) -> Session:
    try:
        return store.get_by_id(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    store: SessionStoreDep,
    request: Optional[SessionCreateRequest] = None,
) -> SessionResponse:
    """Create a new session. Returns the existing one if the id is taken."""
    session_id = request.session_id if request else None
    session = store.create(session_id)
    return to_session_response(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, store: SessionStoreDep) -> SessionResponse:
    """Get session details."""
    return to_session_response(require_session(store, session_id))


@router.get("/{session_id}/messages", response_model=SessionMessagesResponse)
async def get_session_messages(session_id: str, store: SessionStoreDep) -> SessionMessagesResponse:
    """Get the ordered transcript of a session."""
    require_session(store, session_id)
    return SessionMessagesResponse(
        session_id=session_id,
        messages=store.get_history(session_id),
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, store: SessionStoreDep) -> Response:
    """Delete a session and its transcript."""
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
