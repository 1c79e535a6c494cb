"""
In-memory session store.

Holds conversation transcripts keyed by session id for the lifetime of the
process. Transcripts are append-only: messages are never edited or removed,
only whole sessions are deleted (explicitly or by the expiry sweep).

There is no locking. Two concurrent runs against the same session id may
interleave their appends.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from app.models.chat import Message, utc_now

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when a session id is not known to the store."""

    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Unknown session: {self.session_id}"


@dataclass
class Session:
    """A server-held conversation transcript."""

    id: str
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    last_accessed_at: datetime = field(default_factory=utc_now)

    def touch(self) -> None:
        self.last_accessed_at = utc_now()


class SessionStore:
    """Mapping of session id to transcript."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, session_id: Optional[str] = None) -> Session:
        """Create a session, or return the existing one with that id."""
        session_id = session_id or uuid.uuid4().hex
        existing = self._sessions.get(session_id)
        if existing is not None:
            existing.touch()
            return existing

        session = Session(id=session_id)
        self._sessions[session_id] = session
        logger.info(f"Created session {session_id}")
        return session

    def get_by_id(self, session_id: str) -> Session:
        """
        Resolve a session.

        Raises:
            SessionNotFoundError: if the id is unknown
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.touch()
        return session

    def add_message(self, session_id: str, message: Message) -> None:
        """Append a message to an existing session's transcript."""
        session = self.get_by_id(session_id)
        session.messages.append(message)

    def get_history(self, session_id: str) -> list[Message]:
        """
        Return a snapshot of the transcript.

        The returned list is owned by the caller; appending to it does not
        modify the stored transcript.
        """
        return list(self.get_by_id(session_id).messages)

    def delete(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"Deleted session {session_id}")
        return removed is not None

    def purge_expired(self, max_age: timedelta, now: Optional[datetime] = None) -> int:
        """Drop sessions not accessed within `max_age`. Returns the number removed."""
        cutoff = (now or utc_now()) - max_age
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.last_accessed_at < cutoff
        ]
        for session_id in expired:
            del self._sessions[session_id]

        if expired:
            logger.info(f"Purged {len(expired)} expired session(s)")
        return len(expired)
