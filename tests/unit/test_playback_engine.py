"""Tests for the PlaybackEngine scroll model."""

import asyncio
from unittest.mock import Mock

import pytest

from src.domain.entities import (
    PauseCommand,
    PlaybackSettings,
    PlayCommand,
    Script,
    SeekCommand,
    SeekPayload,
    SpeedCommand,
    SpeedPayload,
    StopCommand,
    TextSettings,
    parse_remote_command,
)
from src.domain.services import PlaybackEngine, SpeedCell, estimate_content_height

FRAME = 0.016
LINE = 42 * 1.6


@pytest.fixture
def script():
    return Script(id="s1", title="Keynote", content="First paragraph.\n\nSecond paragraph.")


@pytest.fixture
def engine(script):
    """Engine at 50% speed with plenty of room to scroll."""
    engine = PlaybackEngine(script, playback_settings=PlaybackSettings(speed=50))
    engine.set_layout(content_height=10_000, viewport_height=800)
    return engine


def run_frames(engine, start: float, count: int) -> float:
    """Tick ``count`` frames starting at ``start``; returns the next timestamp."""
    t = start
    for _ in range(count):
        engine.tick(t)
        t += FRAME
    return t


class TestEaseIn:
    def test_first_tick_does_not_move(self, engine):
        engine.play()
        engine.tick(5.0)

        assert engine.position == 0
        assert engine.ease_start_time == 5.0

    def test_ramp_is_slower_than_linear(self, engine):
        engine.play()
        run_frames(engine, 0.0, 63)  # ~1 s

        # Full speed would cover 75 px in a second.
        assert 0 < engine.position < 75 / 2
        assert not engine.has_eased_in

    def test_constant_rate_after_ramp(self, engine):
        engine.play()
        t = run_frames(engine, 0.0, 95)
        assert engine.has_eased_in
        # Quadratic ramp covers roughly a third of the linear distance.
        assert 30 < engine.position < 45

        before = engine.position
        engine.tick(t)
        assert engine.position - before == pytest.approx(75 * FRAME)

    def test_speed_change_after_ramp_applies_immediately(self, engine):
        engine.play()
        t = run_frames(engine, 0.0, 95)

        engine.set_speed(100)
        before = engine.position
        engine.tick(t)

        assert engine.has_eased_in
        assert engine.position - before == pytest.approx(150 * FRAME)

    def test_pause_rearms_ramp(self, engine):
        engine.play()
        t = run_frames(engine, 0.0, 95)

        engine.pause()
        assert not engine.has_eased_in
        assert engine.ease_start_time is None

        engine.play()
        position = engine.position
        engine.tick(t + 10)
        assert engine.position == position
        assert engine.ease_start_time == t + 10

    def test_play_while_playing_keeps_ramp(self, engine):
        engine.play()
        run_frames(engine, 0.0, 95)

        engine.play()

        assert engine.has_eased_in

    def test_frame_delta_is_clamped(self, engine):
        engine.play()
        t = run_frames(engine, 0.0, 95)
        before = engine.position

        engine.tick(t + 5.0)  # e.g. the device slept

        assert engine.position - before == pytest.approx(75 * 0.1)


class TestTransitions:
    def test_stop_resets_position(self, engine):
        positions = []
        engine.on_position_change(positions.append)
        engine.play()
        run_frames(engine, 0.0, 120)

        engine.stop()

        assert not engine.is_playing
        assert engine.position == 0
        assert positions[-1] == 0
        assert not engine.has_eased_in

    def test_reaching_end_pauses(self, script):
        engine = PlaybackEngine(script, playback_settings=PlaybackSettings(speed=100))
        engine.set_layout(content_height=900, viewport_height=800)
        engine.play()

        t = 0.0
        while engine.tick(t):
            t += FRAME

        assert engine.position == 100
        assert not engine.is_playing
        assert not engine.has_eased_in

    def test_waits_for_layout(self, script):
        engine = PlaybackEngine(script)
        engine.play()

        assert engine.tick(0.0) is True
        assert engine.tick(1.0) is True
        assert engine.position == 0
        assert engine.ease_start_time is None

    def test_tick_when_paused_is_noop(self, engine):
        assert engine.tick(1.0) is False
        assert engine.position == 0

    def test_shrinking_layout_clamps_position(self, engine):
        engine.seek_to(5000)

        engine.set_layout(content_height=1000, viewport_height=800)

        assert engine.position == 200


class TestSeek:
    def test_seek_forward_and_backward_by_lines(self, engine):
        assert engine.seek_by_amount("forward") == pytest.approx(3 * LINE)
        assert engine.seek_by_amount("backward", 1) == pytest.approx(2 * LINE)

    def test_seek_clamps_to_range(self, engine):
        assert engine.seek_by_amount("backward") == 0
        engine.seek_to(9150)
        assert engine.seek_by_amount("forward") == 9200

    def test_paragraph_seek_moves_further(self, engine):
        engine.apply_command(SeekCommand(payload=SeekPayload(direction="forward", amount="paragraph")))

        assert engine.position == pytest.approx(9 * LINE)

    def test_seek_uses_text_settings(self, script):
        engine = PlaybackEngine(script, text_settings=TextSettings(font_size=20, line_height=1.5))
        engine.set_layout(5000, 800)

        engine.seek_by_amount("forward", 2)

        assert engine.position == 60


class TestCommands:
    def test_apply_commands(self, engine):
        engine.apply_command(PlayCommand())
        assert engine.is_playing

        engine.apply_command(SpeedCommand(payload=SpeedPayload(speed=80)))
        assert engine.speed_percent == 80

        engine.apply_command(PauseCommand())
        assert not engine.is_playing

        engine.seek_to(300)
        engine.apply_command(StopCommand())
        assert engine.position == 0

    @pytest.mark.parametrize("requested, applied", [(80.5, 80), (80.6, 81), (120, 100), (0, 1)])
    def test_speed_command_is_clamped(self, engine, requested, applied):
        command = parse_remote_command({"type": "speed", "payload": {"speed": requested}})

        engine.apply_command(command)

        assert engine.speed_percent == applied
        assert engine.snapshot().speed_percent == applied

    def test_speed_command_keeps_ramp_when_eased(self, engine):
        engine.play()
        run_frames(engine, 0.0, 95)

        engine.apply_command(parse_remote_command({"type": "speed", "payload": {"speed": 80}}))

        assert engine.has_eased_in
        assert engine.speed_percent == 80

    def test_unsupported_command_ignored(self, engine):
        engine.apply_command({"type": "rewind"})

        assert not engine.is_playing

    def test_bind_applies_commands_and_broadcasts(self, engine):
        connection = Mock()
        unsubscribe = Mock()
        connection.on_message.return_value = unsubscribe

        unbind = engine.bind(connection)
        handler = connection.on_message.call_args[0][0]
        handler(SpeedCommand(payload=SpeedPayload(speed=80)))

        assert engine.speed_percent == 80
        state = connection.broadcast_state.call_args[0][0]
        assert state.speed_percent == 80
        assert state.script_title == "Keynote"
        assert state.is_playing is False

        unbind()
        unsubscribe.assert_called_once()
        assert engine.broadcaster is None

    def test_tick_broadcasts_position(self, engine):
        broadcaster = Mock()
        engine.broadcaster = broadcaster
        engine.play()
        run_frames(engine, 0.0, 20)

        state = broadcaster.broadcast_state.call_args[0][0]
        assert state.is_playing
        assert state.position_pixels == engine.position


def test_speed_cell_clamps():
    cell = SpeedCell()
    assert cell.get() == 50
    assert cell.set(0) == 1
    assert cell.set(250) == 100
    assert cell.set(42.6) == 43


def test_mirror_scale(script):
    engine = PlaybackEngine(script, playback_settings=PlaybackSettings(mirror_horizontal=True))

    assert engine.mirror_scale == (-1, 1)


def test_estimate_content_height_pads_viewport(script):
    settings = TextSettings(font_size=20, line_height=1.5, paragraph_spacing=10)

    height = estimate_content_height(script, settings, viewport_height=800)

    # Two single-line paragraphs plus a full viewport of padding.
    assert height == 800 + 2 * (30 + 10)


@pytest.mark.asyncio
async def test_run_drives_ticks(engine):
    engine.set_speed(100)
    engine.play()

    task = asyncio.create_task(engine.run(frame_interval=0.005))
    await asyncio.sleep(0.1)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert engine.position > 0
