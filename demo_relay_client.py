"""
Interactive client for the teleprompter relay.

This script provides two modes:

1. Teleprompter (default):
   Opens a new session, prints the session code and scrolls a script
   headlessly, printing the position as it moves.
   Usage: python demo_relay_client.py [--script-id ID]

2. Remote:
   Joins an existing session and sends commands typed on the console.
   Usage: python demo_relay_client.py --remote QX7K2M9P

   Commands: play, pause, stop, speed N, +, -, fwd, back, quit

Requirements:
- Start the relay first: python run.py
- Set RELAY_URL if the relay is not on ws://localhost:10000
"""

import argparse
import asyncio
import logging
from datetime import datetime

from src.application.config import settings
from src.domain.entities import ConnectError, PlaybackSettings, Role, Script, TextSettings
from src.domain.services import PlaybackEngine, RemoteController, estimate_content_height
from src.infrastructure import LocalScriptProvider, RelayConnectionManager

# Configure logging
logging.basicConfig(level=logging.WARNING)
logging.getLogger("src").setLevel(logging.INFO)

VIEWPORT_HEIGHT = 800

SAMPLE_SCRIPT = Script(
    id="sample",
    title="Sample Script",
    content="\n\n".join(
        f"Paragraph {n}. Read this line at a steady pace while the text scrolls up towards the focus line."
        for n in range(1, 21)
    ),
)


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _manager() -> RelayConnectionManager:
    return RelayConnectionManager(
        settings.relay_url,
        connect_timeout=settings.connect_timeout,
        reconnect_delay=settings.reconnect_delay,
    )


async def run_teleprompter(script_id: str | None) -> None:
    """Host a session and scroll a script until interrupted."""
    provider = LocalScriptProvider(settings.scripts_dir)
    provider.add_script(SAMPLE_SCRIPT)
    script = provider.get_script(script_id or SAMPLE_SCRIPT.id)

    text_settings = TextSettings()
    engine = PlaybackEngine(
        script,
        text_settings=text_settings,
        playback_settings=PlaybackSettings(),
        base_rate=settings.base_scroll_rate,
        ease_in_duration=settings.ease_in_duration,
        seek_lines=settings.seek_lines,
    )
    engine.set_layout(estimate_content_height(script, text_settings, VIEWPORT_HEIGHT), VIEWPORT_HEIGHT)

    last_printed = {"position": -1.0}

    def print_position(position: float) -> None:
        if abs(position - last_printed["position"]) >= 25 or position == 0:
            last_printed["position"] = position
            print(f"[{_timestamp()}] position {position:7.1f}px  speed {engine.speed_percent}%")

    engine.on_position_change(print_position)

    async with _manager() as manager:
        manager.on_connection_change(lambda connected: print(f"[{_timestamp()}] relay {'connected' if connected else 'disconnected'}"))
        manager.on_peer_change(lambda role, connected: print(f"[{_timestamp()}] {role.value} {'joined' if connected else 'left'}"))
        try:
            session_id = await manager.connect_as_teleprompter()
        except ConnectError as e:
            print(f"✗ Could not start session: {e}")
            return

        print(f"✓ Session code: {session_id}  (script: {script.title})")
        engine.bind(manager)
        motion = asyncio.create_task(engine.run(1 / settings.frame_rate))
        try:
            await asyncio.Event().wait()
        finally:
            motion.cancel()


async def run_remote(session_id: str) -> None:
    """Join a session and forward console commands until ``quit``."""
    async with _manager() as manager:
        controller = RemoteController(manager)

        def print_peer(role: Role, connected: bool) -> None:
            print(f"[{_timestamp()}] {role.value} {'joined' if connected else 'left'}")

        last_playing = {"value": None}

        def print_state(state) -> None:
            # Playing teleprompters broadcast every frame; only report transitions.
            if state.is_playing == last_playing["value"]:
                return
            last_playing["value"] = state.is_playing
            print(
                f"[{_timestamp()}] {state.script_title!r}: {'playing' if state.is_playing else 'paused'} "
                f"at {state.position_pixels:.0f}px, speed {state.speed_percent}%"
            )

        manager.on_peer_change(print_peer)
        manager.on_state_update(print_state)
        try:
            await manager.connect_as_remote(session_id)
        except ConnectError as e:
            print(f"✗ Could not join session {session_id.upper()}: {e}")
            return

        print(f"✓ Joined session {manager.session_id}. Commands: play, pause, stop, speed N, +, -, fwd, back, quit")
        loop = asyncio.get_running_loop()
        while True:
            line = (await loop.run_in_executor(None, input)).strip().lower()
            if line in ("quit", "exit"):
                break
            if line == "play":
                controller.play()
            elif line == "pause":
                controller.pause()
            elif line == "stop":
                controller.stop()
            elif line == "+":
                print(f"speed {controller.adjust_speed(10)}%")
            elif line == "-":
                print(f"speed {controller.adjust_speed(-10)}%")
            elif line.startswith("speed "):
                try:
                    print(f"speed {controller.set_speed(float(line.split()[1]))}%")
                except ValueError:
                    print("usage: speed N (1-100)")
            elif line == "fwd":
                controller.seek_forward()
            elif line == "back":
                controller.seek_backward()
            elif line:
                print(f"unknown command: {line}")
        controller.close()


async def main():
    """Main entry point - choose which side of the session to run."""
    parser = argparse.ArgumentParser(description="Teleprompter relay demo client")
    parser.add_argument("--remote", metavar="SESSION_ID", help="join an existing session as a remote")
    parser.add_argument("--script-id", help="script to display in teleprompter mode")
    args = parser.parse_args()

    if args.remote:
        await run_remote(args.remote)
    else:
        await run_teleprompter(args.script_id)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nStopped.")
