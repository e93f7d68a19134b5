"""Infrastructure layer components."""

from .in_memory_session_registry import InMemorySessionRegistry
from .local_script_provider import LocalScriptProvider
from .relay_connection_manager import RelayConnectionManager
from .starlette_connection import StarletteConnection

__all__ = [
    "InMemorySessionRegistry",
    "LocalScriptProvider",
    "RelayConnectionManager",
    "StarletteConnection",
]
