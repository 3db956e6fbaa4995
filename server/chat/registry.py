"""
Session registry module.

Thread-safe set of the sessions currently connected to the server. The lock
is only ever held to mutate or copy the set, never across socket I/O.
"""

import threading
from typing import List, Set

from server.chat.session import ChatSession, SessionState


class SessionRegistry:
    """Collection of active chat sessions."""

    def __init__(self):
        self._sessions: Set[ChatSession] = set()
        self._lock = threading.Lock()

    def add(self, session: ChatSession) -> bool:
        """Register a session. Closed or already-registered sessions are refused."""
        with self._lock:
            if session.closed or session in self._sessions:
                return False
            self._sessions.add(session)
            return True

    def remove(self, session: ChatSession) -> bool:
        """
        Deregister a session.

        Returns True only for the call that actually removed it, so racing
        finalize paths can tell which one owns the follow-up work.
        """
        with self._lock:
            if session not in self._sessions:
                return False
            self._sessions.discard(session)
            return True

    def snapshot(self) -> List[ChatSession]:
        """Point-in-time copy of the open sessions, safe to iterate unlocked."""
        with self._lock:
            return [session for session in self._sessions if not session.closed]

    def clear(self) -> List[ChatSession]:
        """Empty the registry and return what was in it."""
        with self._lock:
            sessions = list(self._sessions)
            self._sessions.clear()
        return sessions

    def count(self) -> int:
        """Sessions that completed the handshake and are still open."""
        with self._lock:
            return sum(1 for session in self._sessions
                       if session.state is SessionState.NAMED)

    def __len__(self):
        return self.count()

    def __contains__(self, session):
        with self._lock:
            return session in self._sessions
