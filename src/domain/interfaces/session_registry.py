"""Session Registry interface."""

from typing import Protocol

from ..entities.relay_session import JoinAck, SessionSummary
from ..entities.websocket_messages import Role
from .connection import RelayConnection


class SessionRegistry(Protocol):
    """Protocol defining the pairing and routing rules of the relay.

    All state changes to sessions go through these methods. Callers must
    serialize access; the in-memory implementation relies on every method
    running to completion on the event loop without awaiting.
    """

    def register(self, session_id: str, connection: RelayConnection, role: Role) -> JoinAck:
        """Install a connection into a session.

        Raises:
            SlotOccupiedError: If a teleprompter joins a session whose slot
                is held by a live connection.
        """
        ...

    def unregister(self, connection: RelayConnection) -> list[RelayConnection]:
        """Remove a connection from its session, deleting the session if empty.

        Returns:
            Live connections on the other side of the session that should
            receive a ``peer_disconnected`` notice.
        """
        ...

    def touch(self, session_id: str) -> None:
        """Create the session if unseen and record activity on it."""
        ...

    def route(self, source: RelayConnection) -> list[RelayConnection]:
        """Compute the live destinations for a frame sent by ``source``."""
        ...

    def sweep(self, max_idle: float) -> list[str]:
        """Close and remove sessions idle for longer than ``max_idle`` seconds.

        Returns:
            The ids of the removed sessions.
        """
        ...

    def get_summary(self, session_id: str) -> SessionSummary:
        """Describe a session.

        Raises:
            ValueError: If the session is not found.
        """
        ...
