"""Relay-side connection interface."""

from typing import Optional, Protocol, runtime_checkable

from ..entities.websocket_messages import Role


@runtime_checkable
class RelayConnection(Protocol):
    """Protocol for a transport handle held by the session registry.

    ``send_text`` and ``close`` must not block: implementations queue the
    work so a slow peer cannot stall delivery to the others.
    """

    connection_id: str
    role: Optional[Role]
    session_id: Optional[str]
    is_alive: bool
    heartbeat: bool

    @property
    def is_open(self) -> bool:
        """Whether the transport can still accept frames."""
        ...

    def send_text(self, text: str) -> None:
        """Queue a text frame for delivery."""
        ...

    def close(self, code: int = 1000, reason: str = "") -> None:
        """Queue a close of the transport with an application close code."""
        ...
