"""Remote controller service for the remote device."""

import logging
from typing import Literal, Optional

from ..entities.websocket_messages import (
    PauseCommand,
    PlaybackState,
    PlayCommand,
    Role,
    SeekCommand,
    SeekPayload,
    SpeedCommand,
    SpeedPayload,
    StopCommand,
)
from ..interfaces.relay_link import CommandChannel
from .playback_engine import clamp_speed

logger = logging.getLogger(__name__)

SPEED_STEP = 10


class RemoteController:
    """
    Translates remote-control gestures into commands and tracks the
    teleprompter state broadcast back through the relay.
    """

    def __init__(self, channel: CommandChannel, default_speed: int = 50):
        self._channel = channel
        self.state: Optional[PlaybackState] = None
        self.local_speed = clamp_speed(default_speed)
        self.teleprompter_present = False
        self._unsubscribers = [
            channel.on_state_update(self._on_state_update),
            channel.on_peer_change(self._on_peer_change),
            channel.on_connection_change(self._on_connection_change),
        ]

    @property
    def is_connected(self) -> bool:
        return self._channel.is_connected

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing if self.state is not None else False

    def close(self) -> None:
        """Stop listening to the channel."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def play(self) -> None:
        self._channel.send_command(PlayCommand())

    def pause(self) -> None:
        self._channel.send_command(PauseCommand())

    def stop(self) -> None:
        self._channel.send_command(StopCommand())

    def toggle_playback(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def set_speed(self, value: float) -> int:
        self.local_speed = clamp_speed(value)
        self._channel.send_command(SpeedCommand(payload=SpeedPayload(speed=self.local_speed)))
        return self.local_speed

    def adjust_speed(self, delta: int = SPEED_STEP) -> int:
        return self.set_speed(self.local_speed + delta)

    def seek_forward(self, amount: Literal["line", "paragraph"] = "line") -> None:
        self._channel.send_command(SeekCommand(payload=SeekPayload(direction="forward", amount=amount)))

    def seek_backward(self, amount: Literal["line", "paragraph"] = "line") -> None:
        self._channel.send_command(SeekCommand(payload=SeekPayload(direction="backward", amount=amount)))

    def _on_state_update(self, state: PlaybackState) -> None:
        self.state = state
        self.local_speed = state.speed_percent
        self.teleprompter_present = True

    def _on_peer_change(self, role: Role, connected: bool) -> None:
        if role == Role.TELEPROMPTER:
            self.teleprompter_present = connected
            logger.info(f"Teleprompter {'joined' if connected else 'left'} the session")

    def _on_connection_change(self, connected: bool) -> None:
        if not connected:
            self.teleprompter_present = False
