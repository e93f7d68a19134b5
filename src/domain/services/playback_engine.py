"""Playback engine turning a speed value and a clock into scroll positions."""

import asyncio
import logging
import math
import time
from typing import Callable, Literal, Optional

from ..entities.display_settings import PlaybackSettings, TextSettings
from ..entities.script import Script
from ..entities.websocket_messages import (
    PauseCommand,
    PlaybackState,
    PlayCommand,
    SeekCommand,
    SpeedCommand,
    StopCommand,
)
from ..interfaces.relay_link import StateBroadcaster

logger = logging.getLogger(__name__)

BASE_RATE = 150.0  # pixels per second at 100% speed
EASE_IN_DURATION = 1.5
MAX_FRAME_DELTA = 0.1
PARAGRAPH_SEEK_FACTOR = 3
SPEED_MIN = 1
SPEED_MAX = 100

PositionHandler = Callable[[float], None]


def clamp_speed(value: float) -> int:
    return int(max(SPEED_MIN, min(SPEED_MAX, round(value))))


def ease_in_quad(t: float) -> float:
    return t * t


def estimate_content_height(
    script: Script,
    text_settings: TextSettings,
    viewport_height: float,
    chars_per_line: int = 40,
) -> float:
    """Approximate the rendered height of a script.

    The display pads the text with a spacer of a quarter viewport above
    (so reading starts at the focus line) and three quarters below (so the
    last line can scroll up to it).
    """
    text_height = 0.0
    for paragraph in script.paragraphs:
        lines = max(1, math.ceil(len(paragraph) / chars_per_line))
        text_height += lines * text_settings.line_pixels + text_settings.paragraph_spacing
    return viewport_height * 0.25 + text_height + viewport_height * 0.75


class SpeedCell:
    """Speed percent shared between the controls and the motion tick.

    Writing it does not notify anyone; the tick reads the latest value on
    its next frame.
    """

    __slots__ = ("_value",)

    def __init__(self, value: float = 50):
        self._value = clamp_speed(value)

    def get(self) -> int:
        return self._value

    def set(self, value: float) -> int:
        self._value = clamp_speed(value)
        return self._value


class PlaybackEngine:
    """
    Scroll-position engine for the teleprompter device.

    ``tick`` is called once per display refresh. Each transition into
    playing re-arms a quadratic ease-in over ``ease_in_duration`` seconds;
    once the ramp completes, speed changes apply immediately until the
    next pause or stop.

    All mutation happens on the event loop thread, so commands delivered
    by the connection manager land between ticks and never observe a
    half-updated position.
    """

    def __init__(
        self,
        script: Script,
        text_settings: Optional[TextSettings] = None,
        playback_settings: Optional[PlaybackSettings] = None,
        broadcaster: Optional[StateBroadcaster] = None,
        base_rate: float = BASE_RATE,
        ease_in_duration: float = EASE_IN_DURATION,
        seek_lines: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.script = script
        self.text_settings = text_settings or TextSettings()
        self.playback_settings = playback_settings or PlaybackSettings()
        self.broadcaster = broadcaster
        self.base_rate = base_rate
        self.ease_in_duration = ease_in_duration
        self.seek_lines = seek_lines
        self._clock = clock

        self.speed = SpeedCell(self.playback_settings.speed)
        self._playing = False
        self._position = 0.0
        self._content_height = 0.0
        self._viewport_height = 0.0

        self._ease_start_time: Optional[float] = None
        self._has_eased_in = False
        self._last_timestamp: Optional[float] = None

        self._position_handlers: list[PositionHandler] = []

    # ===== Read-only state =====

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def position(self) -> float:
        return self._position

    @property
    def speed_percent(self) -> int:
        return self.speed.get()

    @property
    def has_eased_in(self) -> bool:
        return self._has_eased_in

    @property
    def ease_start_time(self) -> Optional[float]:
        return self._ease_start_time

    @property
    def max_scroll(self) -> float:
        return max(0.0, self._content_height - self._viewport_height)

    @property
    def mirror_scale(self) -> tuple[int, int]:
        """Horizontal and vertical scale factors for the renderer."""
        return (
            -1 if self.playback_settings.mirror_horizontal else 1,
            -1 if self.playback_settings.mirror_vertical else 1,
        )

    def snapshot(self) -> PlaybackState:
        return PlaybackState(
            is_playing=self._playing,
            speed_percent=self.speed.get(),
            position_pixels=self._position,
            script_title=self.script.title,
        )

    # ===== Subscriptions =====

    def on_position_change(self, handler: PositionHandler) -> Callable[[], None]:
        self._position_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._position_handlers:
                self._position_handlers.remove(handler)

        return unsubscribe

    def bind(self, connection) -> Callable[[], None]:
        """Apply commands received on ``connection`` and broadcast state through it.

        Returns:
            A callable that detaches the engine again.
        """
        self.broadcaster = connection
        unsubscribe = connection.on_message(self.apply_command)
        self._broadcast()

        def unbind() -> None:
            unsubscribe()
            if self.broadcaster is connection:
                self.broadcaster = None

        return unbind

    def _emit_position(self) -> None:
        for handler in list(self._position_handlers):
            try:
                handler(self._position)
            except Exception as e:
                logger.error(f"Position handler {handler!r} raised: {e}", exc_info=True)

    def _broadcast(self) -> None:
        if self.broadcaster is not None:
            self.broadcaster.broadcast_state(self.snapshot())

    # ===== Layout =====

    def set_layout(self, content_height: float, viewport_height: float) -> None:
        """Record the rendered content and viewport heights in pixels."""
        self._content_height = max(0.0, content_height)
        self._viewport_height = max(0.0, viewport_height)
        if self._position > self.max_scroll:
            self._position = self.max_scroll
            self._emit_position()

    # ===== Transitions =====

    def _reset_ease(self) -> None:
        self._has_eased_in = False
        self._ease_start_time = None
        self._last_timestamp = None

    def play(self) -> None:
        if self._playing:
            return
        self._playing = True
        self._reset_ease()
        logger.info(f"Playback started at {self._position:.1f}px, speed {self.speed.get()}%")
        self._broadcast()

    def pause(self) -> None:
        self._playing = False
        self._reset_ease()
        self._broadcast()

    def stop(self) -> None:
        self._playing = False
        self._reset_ease()
        self._position = 0.0
        self._emit_position()
        self._broadcast()

    def set_speed(self, value: float) -> int:
        """Update the speed without touching the ease-in ramp."""
        applied = self.speed.set(value)
        self._broadcast()
        return applied

    def seek_by_amount(self, direction: Literal["forward", "backward"], lines: Optional[float] = None) -> float:
        """
        Move the position by a number of rendered lines.

        Args:
            direction: "forward" scrolls towards the end of the script.
            lines: Number of lines; defaults to ``seek_lines``.

        Returns:
            The new position in pixels.
        """
        lines = self.seek_lines if lines is None else lines
        amount = lines * self.text_settings.line_pixels
        if direction == "forward":
            self._position = min(self._position + amount, self.max_scroll)
        else:
            self._position = max(self._position - amount, 0.0)
        self._emit_position()
        self._broadcast()
        return self._position

    def seek_to(self, position: float) -> float:
        """Jump to an externally supplied position, clamped to the scroll range."""
        self._position = min(max(position, 0.0), self.max_scroll)
        self._emit_position()
        self._broadcast()
        return self._position

    def apply_command(self, command) -> None:
        """Apply a remote command as the matching local control would."""
        match command:
            case PlayCommand():
                self.play()
            case PauseCommand():
                self.pause()
            case StopCommand():
                self.stop()
            case SpeedCommand(payload=payload):
                self.set_speed(payload.speed)
            case SeekCommand(payload=payload):
                factor = PARAGRAPH_SEEK_FACTOR if payload.amount == "paragraph" else 1
                self.seek_by_amount(payload.direction, self.seek_lines * factor)
            case _:
                logger.warning(f"Ignoring unsupported command: {command!r}")

    # ===== Motion =====

    def tick(self, timestamp: Optional[float] = None) -> bool:
        """
        Advance the position for one display refresh.

        Args:
            timestamp: Monotonic time of the frame in seconds; defaults to
                the engine clock.

        Returns:
            Whether motion should continue on the next frame.
        """
        if not self._playing:
            return False
        if timestamp is None:
            timestamp = self._clock()

        # Content not laid out yet; keep waiting without starting the ramp.
        if self._content_height <= self._viewport_height:
            return True

        if self._ease_start_time is None:
            self._ease_start_time = timestamp
        if self._last_timestamp is None:
            self._last_timestamp = timestamp
        delta_time = min(max(timestamp - self._last_timestamp, 0.0), MAX_FRAME_DELTA)
        self._last_timestamp = timestamp

        target_speed = (self.speed.get() / 100) * self.base_rate
        applied_speed = target_speed
        if not self._has_eased_in:
            progress = min((timestamp - self._ease_start_time) / self.ease_in_duration, 1.0)
            applied_speed = target_speed * ease_in_quad(progress)
            if progress >= 1.0:
                self._has_eased_in = True

        self._position += applied_speed * delta_time

        max_scroll = self.max_scroll
        if self._position >= max_scroll:
            self._position = max_scroll
            self._playing = False
            self._reset_ease()
            logger.info("Reached end of script, playback paused")
            self._emit_position()
            self._broadcast()
            return False

        self._emit_position()
        self._broadcast()
        return True

    async def run(self, frame_interval: float = 1 / 60) -> None:
        """Drive ``tick`` from the event loop until cancelled."""
        while True:
            self.tick(self._clock())
            await asyncio.sleep(frame_interval)
