"""Error types shared by the relay and its clients."""

from typing import Optional


class RelayError(Exception):
    """Base class for relay and connection errors."""


class SlotOccupiedError(RelayError):
    """A teleprompter tried to join a session whose slot is held by a live connection."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} already has a teleprompter")
        self.session_id = session_id


class ConnectError(RelayError):
    """Base class for client-side connection failures."""


class ConnectTimeoutError(ConnectError):
    """The relay did not acknowledge the join within the timeout."""

    def __init__(self, timeout: float):
        super().__init__(f"Relay did not acknowledge join within {timeout:g}s")
        self.timeout = timeout


class SessionRejectedError(ConnectError):
    """The relay closed the transport before acknowledging the join."""

    def __init__(self, code: Optional[int], reason: str = ""):
        super().__init__(f"Relay closed the connection (code={code}, reason={reason!r})")
        self.code = code
        self.reason = reason


class SessionBusyError(SessionRejectedError):
    """The relay rejected a teleprompter because the session already has one."""
