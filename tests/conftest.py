"""Shared fixtures for relay tests."""

from typing import Optional

import pytest

from src.domain.entities import Role


class FakeConnection:
    """In-memory stand-in for a relay connection."""

    def __init__(self, connection_id: str, session_id: Optional[str] = None):
        self.connection_id = connection_id
        self.session_id = session_id
        self.role: Optional[Role] = None
        self.is_alive = True
        self.heartbeat = False
        self.sent: list[str] = []
        self.close_code: Optional[int] = None
        self.close_reason = ""
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def send_text(self, text: str) -> None:
        if self._open:
            self.sent.append(text)

    def close(self, code: int = 1000, reason: str = "") -> None:
        if self._open:
            self._open = False
            self.close_code = int(code)
            self.close_reason = reason

    def drop(self) -> None:
        """Simulate the transport dying without a close handshake."""
        self._open = False


@pytest.fixture
def make_connection():
    """Factory for fake connections bound to a session path."""
    counter = {"n": 0}

    def factory(session_id: Optional[str] = "QX7K2M9P") -> FakeConnection:
        counter["n"] += 1
        return FakeConnection(f"conn-{counter['n']}", session_id)

    return factory
