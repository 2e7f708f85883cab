import logging
from datetime import datetime, timedelta
from typing import Dict

from .errors import SessionNotFound
from .gateway import ListingGateway
from .wizard import WizardSession

logger = logging.getLogger("listing-optimizer")


class SessionStore:
    """In-memory wizard sessions. Nothing outlives the process.

    Sessions idle for longer than ``ttl_seconds`` are dropped the next time a
    session is created or looked up. A ttl of zero or less keeps them forever.
    """

    def __init__(self, gateway: ListingGateway, ttl_seconds: int = 0):
        self.gateway = gateway
        self.ttl_seconds = ttl_seconds
        self._sessions: Dict[str, WizardSession] = {}

    def create(self) -> WizardSession:
        self.prune()
        session = WizardSession(self.gateway)
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> WizardSession:
        self.prune()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Session {session_id} not found.")
        session.last_access = datetime.utcnow()
        return session

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFound(f"Session {session_id} not found.")

    def prune(self) -> int:
        if self.ttl_seconds <= 0:
            return 0
        cutoff = datetime.utcnow() - timedelta(seconds=self.ttl_seconds)
        expired = [sid for sid, session in self._sessions.items() if session.last_access < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Dropped %d idle sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
