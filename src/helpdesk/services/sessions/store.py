from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional

from src.helpdesk.config import Settings
from src.helpdesk.domain.errors import SessionBusyError
from src.helpdesk.domain.models.transcript import Role, Session, TranscriptEntry


class SessionStore(ABC):
    """Maps a session id to its conversation transcript."""

    def __init__(self, system_prompt: str) -> None:
        self._system_prompt = system_prompt

    def _new_session(self, session_id: str) -> Session:
        return Session(
            id=session_id,
            created_at=datetime.now(timezone.utc),
            transcript=[TranscriptEntry(role=Role.SYSTEM, content=self._system_prompt)],
        )

    @abstractmethod
    def get_or_create(self, session_id: str) -> Session:
        raise NotImplementedError

    @abstractmethod
    def append(self, session: Session, entry: TranscriptEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Forget a session. Raises :class:`SessionBusyError` while a turn holds its lock."""
        raise NotImplementedError

    @abstractmethod
    def lock_for(self, session_id: str) -> asyncio.Lock:
        """Return the lock that serializes whole turns for ``session_id``."""
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-lifetime session storage for the long-running server.

    ``max_entries`` optionally caps each transcript; the oldest non-system
    entries are dropped first and the system seed is always kept.
    """

    def __init__(self, system_prompt: str, *, max_entries: Optional[int] = None) -> None:
        super().__init__(system_prompt)
        if max_entries is not None and max_entries < 2:
            raise ValueError("max_entries must leave room for the system prompt and one message")
        self._max_entries = max_entries
        self._sessions: Dict[str, Session] = {}
        self._turn_locks: Dict[str, asyncio.Lock] = {}
        self._lock = Lock()

    def get_or_create(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = self._new_session(session_id)
                self._sessions[session_id] = session
            return session

    def append(self, session: Session, entry: TranscriptEntry) -> None:
        with self._lock:
            session.transcript.append(entry)
            if self._max_entries is not None and len(session.transcript) > self._max_entries:
                keep = self._max_entries - 1
                session.transcript[1:] = session.transcript[-keep:]

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            # A held turn lock means a turn will still append to this session.
            lock = self._turn_locks.get(session_id)
            if lock is not None and lock.locked():
                raise SessionBusyError(f"session {session_id!r} has a turn in progress")
            self._turn_locks.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def lock_for(self, session_id: str) -> asyncio.Lock:
        with self._lock:
            lock = self._turn_locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self._turn_locks[session_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._sessions)


class EphemeralSessionStore(SessionStore):
    """Stateless policy for one-shot deployments.

    Every call gets a freshly seeded session that is never retained, so a
    transcript only ever holds the system prompt and the current turn.
    """

    def get_or_create(self, session_id: str) -> Session:
        return self._new_session(session_id)

    def append(self, session: Session, entry: TranscriptEntry) -> None:
        session.transcript.append(entry)

    def get(self, session_id: str) -> Optional[Session]:
        return None

    def delete(self, session_id: str) -> bool:
        return False

    def lock_for(self, session_id: str) -> asyncio.Lock:
        return asyncio.Lock()


def build_session_store(config: Settings) -> SessionStore:
    """Select the session lifecycle policy from DEPLOYMENT_MODE."""

    if config.is_serverless:
        return EphemeralSessionStore(config.system_prompt)
    return InMemorySessionStore(config.system_prompt, max_entries=config.session_max_entries)
