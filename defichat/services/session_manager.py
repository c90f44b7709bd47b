"""Session management for in-memory storage."""

from datetime import UTC, datetime, timedelta

from defichat.models.session import Session
from defichat.utils.ids import new_id
from defichat.utils.logging import get_logger

logger = get_logger(__name__)


class InMemorySessionManager:
    """In-memory session manager keyed by CUID session ids."""

    def __init__(self, session_timeout_minutes: int = 60):
        """Initialize session manager.

        Args:
            session_timeout_minutes: Minutes of inactivity before a session expires
        """
        self.sessions: dict[str, Session] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def get_or_create_session(self, session_id: str | None = None) -> Session:
        """Get existing session or create new one.

        Args:
            session_id: Optional existing session ID

        Returns:
            Session object (existing or newly created)
        """
        self.pop_expired()

        if session_id and session_id in self.sessions:
            session = self.sessions[session_id]
            session.update_activity()
            return session

        new_session_id = session_id or new_id()
        session = Session(session_id=new_session_id)
        self.sessions[new_session_id] = session
        logger.info(f"Created session {new_session_id}")
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get existing session by ID, or None if unknown or expired."""
        self.pop_expired()

        session = self.sessions.get(session_id)
        if session:
            session.update_activity()
        return session

    def delete_session(self, session_id: str) -> Session | None:
        """Remove a session and return it, or None if not found."""
        return self.sessions.pop(session_id, None)

    def pop_expired(self) -> list[Session]:
        """Remove and return sessions idle for longer than the timeout."""
        current_time = datetime.now(UTC)
        expired = [
            session_id
            for session_id, session in self.sessions.items()
            if current_time - session.last_activity > self.session_timeout
        ]
        return [self.sessions.pop(session_id) for session_id in expired]

    def get_session_count(self) -> int:
        """Get current number of active sessions."""
        self.pop_expired()
        return len(self.sessions)
