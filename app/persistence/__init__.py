"""Persistence layer for session state."""

from app.persistence.session_store import Session, SessionNotFoundError, SessionStore

__all__ = ["Session", "SessionNotFoundError", "SessionStore"]
