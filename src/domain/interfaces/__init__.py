"""Domain interfaces for the teleprompter relay."""

from .connection import RelayConnection
from .relay_link import CommandChannel, StateBroadcaster, Unsubscribe
from .script_provider import ScriptProvider
from .session_registry import SessionRegistry

__all__ = [
    "CommandChannel",
    "RelayConnection",
    "ScriptProvider",
    "SessionRegistry",
    "StateBroadcaster",
    "Unsubscribe",
]
