"""In-memory implementation of the Session Registry."""

import logging
import time
from typing import Callable, Dict, Optional

from ..domain.entities.errors import SlotOccupiedError
from ..domain.entities.relay_session import (
    JoinAck,
    RelaySession,
    SessionSummary,
    normalize_session_id,
)
from ..domain.entities.websocket_messages import CloseCode, Role
from ..domain.interfaces.connection import RelayConnection
from ..domain.interfaces.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class InMemorySessionRegistry(SessionRegistry):
    """Session registry backed by a dictionary.

    None of the methods await, so on a single asyncio event loop each call
    runs to completion before any other handler or periodic task can touch
    the registry. That is what keeps the one-teleprompter-per-session rule
    intact under concurrent joins.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._sessions: Dict[str, RelaySession] = {}
        self._clock = clock

    def touch(self, session_id: str) -> None:
        session_id = normalize_session_id(session_id)
        session = self._sessions.get(session_id)
        if session is None:
            session = RelaySession(session_id=session_id, created_at=self._clock())
            self._sessions[session_id] = session
            logger.info(f"Session {session_id} created")
        session.touch(self._clock())

    def register(self, session_id: str, connection: RelayConnection, role: Role) -> JoinAck:
        """Install a connection into the teleprompter slot or the remote set.

        Args:
            session_id: Session code, normalized before lookup.
            connection: The joining connection.
            role: Role declared in the join message.

        Returns:
            JoinAck: The live peers on the other side of the session.

        Raises:
            SlotOccupiedError: If the teleprompter slot is held by another
                live connection.
        """
        session_id = normalize_session_id(session_id)
        self.touch(session_id)
        session = self._sessions[session_id]

        if role == Role.TELEPROMPTER:
            current = session.teleprompter
            if current is not None and current is not connection and current.is_open:
                logger.warning(f"Session {session_id}: rejected second teleprompter {connection.connection_id}")
                raise SlotOccupiedError(session_id)
            session.teleprompter = connection
            peers = [remote for remote in session.remotes if remote.is_open]
        else:
            session.remotes.add(connection)
            teleprompter = session.teleprompter
            peers = [teleprompter] if teleprompter is not None and teleprompter.is_open else []

        connection.role = role
        connection.session_id = session_id
        logger.info(
            f"Session {session_id}: {role.value} {connection.connection_id} joined "
            f"({len(peers)} peer(s) present)"
        )
        return JoinAck(session_id=session_id, role=role, peers=peers)

    def unregister(self, connection: RelayConnection) -> list[RelayConnection]:
        """Remove a connection and delete its session once nobody is left.

        Args:
            connection: The departing connection.

        Returns:
            list[RelayConnection]: Live peers to notify of the departure.
        """
        if connection.session_id is None:
            return []
        session = self._sessions.get(connection.session_id)
        if session is None:
            return []

        peers: list[RelayConnection] = []
        if session.teleprompter is connection:
            session.teleprompter = None
            peers = [remote for remote in session.remotes if remote.is_open]
        elif connection in session.remotes:
            session.remotes.discard(connection)
            teleprompter = session.teleprompter
            if teleprompter is not None and teleprompter.is_open:
                peers = [teleprompter]

        if session.is_empty:
            del self._sessions[session.session_id]
            logger.info(f"Session {session.session_id} removed (no participants left)")
        else:
            session.touch(self._clock())
        return peers

    def route(self, source: RelayConnection) -> list[RelayConnection]:
        """Compute the live destinations for a frame from ``source``.

        Teleprompter frames go to every live remote; remote frames go to
        the teleprompter when one is present and live. Closed destinations
        are skipped.
        """
        if source.session_id is None or source.role is None:
            return []
        session = self._sessions.get(source.session_id)
        if session is None:
            return []
        session.touch(self._clock())

        if source.role == Role.TELEPROMPTER:
            if session.teleprompter is not source:
                return []
            return [remote for remote in session.remotes if remote.is_open]

        if source not in session.remotes:
            return []
        teleprompter = session.teleprompter
        if teleprompter is not None and teleprompter.is_open:
            return [teleprompter]
        return []

    def sweep(self, max_idle: float) -> list[str]:
        """Expire sessions idle for longer than ``max_idle`` seconds.

        Participants still connected are closed with the session-expired
        code before the session is dropped.
        """
        now = self._clock()
        expired = [
            session for session in self._sessions.values()
            if now - session.last_activity > max_idle
        ]
        for session in expired:
            for connection in session.participants():
                if connection.is_open:
                    connection.close(CloseCode.SESSION_EXPIRED, "Session expired")
            del self._sessions[session.session_id]
            logger.info(f"Session {session.session_id} expired after {now - session.last_activity:.0f}s idle")
        return [session.session_id for session in expired]

    def get_summary(self, session_id: str) -> SessionSummary:
        session = self._sessions.get(normalize_session_id(session_id))
        if session is None:
            raise ValueError(f"Session with id {session_id} not found")
        return session.summary(self._clock())

    def get_session(self, session_id: str) -> Optional[RelaySession]:
        return self._sessions.get(normalize_session_id(session_id))

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        """Drop all sessions without notifying anyone."""
        self._sessions.clear()
