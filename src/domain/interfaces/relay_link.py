"""Client-side interfaces to the relay link."""

from typing import Callable, Protocol, runtime_checkable

from ..entities.websocket_messages import PlaybackState, Role

Unsubscribe = Callable[[], None]


@runtime_checkable
class StateBroadcaster(Protocol):
    """What the playback engine needs from the connection manager."""

    def broadcast_state(self, state: PlaybackState) -> None:
        """Send a state snapshot; a no-op when not connected."""
        ...


@runtime_checkable
class CommandChannel(Protocol):
    """What the remote controller needs from the connection manager."""

    @property
    def is_connected(self) -> bool:
        ...

    def send_command(self, command) -> None:
        """Send a remote command; a no-op when not connected."""
        ...

    def on_state_update(self, handler: Callable[[PlaybackState], None]) -> Unsubscribe:
        ...

    def on_connection_change(self, handler: Callable[[bool], None]) -> Unsubscribe:
        ...

    def on_peer_change(self, handler: Callable[[Role, bool], None]) -> Unsubscribe:
        ...
