"""Session entities for the teleprompter relay."""

import secrets
import time
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field

from .websocket_messages import Role

SESSION_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SESSION_ID_LENGTH = 8


def generate_session_id() -> str:
    """Generate a short, easy-to-type session code.

    The alphabet leaves out I, O, 0 and 1 so codes can be read aloud or
    typed from another screen without ambiguity.
    """
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(SESSION_ID_LENGTH))


def normalize_session_id(session_id: str) -> str:
    return session_id.strip().upper()


@dataclass(eq=False)
class RelaySession:
    """A pairing context: one teleprompter slot and any number of remotes.

    Connection references are typed loosely here; they satisfy the
    ``RelayConnection`` protocol from the interfaces package.
    """

    session_id: str
    teleprompter: Optional[object] = None
    remotes: set = field(default_factory=set)
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)

    def touch(self, now: Optional[float] = None) -> None:
        self.last_activity = time.monotonic() if now is None else now

    @property
    def is_empty(self) -> bool:
        return self.teleprompter is None and not self.remotes

    def participants(self) -> list:
        """All connections in the session, teleprompter first."""
        members = [self.teleprompter] if self.teleprompter is not None else []
        members.extend(self.remotes)
        return members

    def summary(self, now: Optional[float] = None) -> "SessionSummary":
        now = time.monotonic() if now is None else now
        return SessionSummary(
            session_id=self.session_id,
            has_teleprompter=self.teleprompter is not None,
            remote_count=len(self.remotes),
            idle_seconds=max(0.0, now - self.last_activity),
        )


class SessionSummary(BaseModel):
    """Read-only view of a session exposed over HTTP."""

    session_id: str
    has_teleprompter: bool
    remote_count: int = Field(ge=0)
    idle_seconds: float = Field(ge=0)


@dataclass
class JoinAck:
    """Result of a successful registration.

    ``peers`` holds the live connections on the other side of the
    session at the time of the join, used to emit ``peer_connected``
    notices in both directions.
    """

    session_id: str
    role: Role
    peers: list = field(default_factory=list)
