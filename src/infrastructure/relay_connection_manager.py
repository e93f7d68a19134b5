"""Client-side connection manager for the teleprompter relay."""

import asyncio
import json
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..domain.entities.errors import (
    ConnectError,
    ConnectTimeoutError,
    SessionBusyError,
    SessionRejectedError,
)
from ..domain.entities.relay_session import generate_session_id, normalize_session_id
from ..domain.entities.websocket_messages import (
    COMMAND_TYPES,
    CloseCode,
    CommandMessage,
    JoinMessage,
    PlaybackState,
    PongMessage,
    Role,
    StateMessage,
    encode,
    parse_playback_state,
    parse_remote_command,
)

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]
MessageHandler = Callable[[BaseModel], None]
ConnectionHandler = Callable[[bool], None]
StateHandler = Callable[[PlaybackState], None]
PeerHandler = Callable[[Role, bool], None]


class RelayConnectionManager:
    """
    Owns one outbound link to the relay.

    Responsibilities:
    - Role-aware handshake (``join`` then wait for the relay's ``joined``)
    - Fire-and-forget sends that never raise and never block the caller
    - Fan-out of inbound frames to subscribers, in registration order
    - Reconnection after an unexpected close, every ``reconnect_delay``
      seconds with the same role and session code, until ``disconnect``

    Outbound state snapshots are conflated: while a send is in flight only
    the most recent snapshot is kept. Commands are queued up to
    ``max_pending_commands``; beyond that new commands are dropped.
    """

    def __init__(
        self,
        relay_url: str,
        connect_timeout: float = 10.0,
        reconnect_delay: float = 3.0,
        connector: Optional[Connector] = None,
        max_pending_commands: int = 32,
    ):
        self._relay_url = relay_url.rstrip("/")
        self._connect_timeout = connect_timeout
        self._reconnect_delay = reconnect_delay
        self._connector: Connector = connector or websockets.connect
        self._max_pending_commands = max_pending_commands

        self._ws: Any = None
        self._session_id: Optional[str] = None
        self._role: Optional[Role] = None
        self._should_reconnect = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None

        self._commands: deque[str] = deque()
        self._pending_state: Optional[str] = None
        self._wakeup = asyncio.Event()

        self._message_handlers: list[MessageHandler] = []
        self._connection_handlers: list[ConnectionHandler] = []
        self._state_handlers: list[StateHandler] = []
        self._peer_handlers: list[PeerHandler] = []

    async def __aenter__(self) -> "RelayConnectionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # ===== Properties =====

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def role(self) -> Optional[Role]:
        return self._role

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def relay_url(self) -> str:
        return self._relay_url

    # ===== Subscriptions =====

    def on_message(self, handler: MessageHandler) -> Callable[[], None]:
        """Subscribe to remote commands (teleprompter side)."""
        return self._subscribe(self._message_handlers, handler)

    def on_connection_change(self, handler: ConnectionHandler) -> Callable[[], None]:
        return self._subscribe(self._connection_handlers, handler)

    def on_state_update(self, handler: StateHandler) -> Callable[[], None]:
        """Subscribe to playback state snapshots (remote side)."""
        return self._subscribe(self._state_handlers, handler)

    def on_peer_change(self, handler: PeerHandler) -> Callable[[], None]:
        """Subscribe to ``peer_connected`` / ``peer_disconnected`` notices."""
        return self._subscribe(self._peer_handlers, handler)

    @staticmethod
    def _subscribe(handlers: list, handler: Callable) -> Callable[[], None]:
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def _notify(self, handlers: list, *args) -> None:
        for handler in list(handlers):
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"Subscriber {handler!r} raised: {e}", exc_info=True)

    # ===== Connecting =====

    async def connect_as_teleprompter(self) -> str:
        """
        Open a new session as its teleprompter.

        Returns:
            The freshly generated session code.

        Raises:
            ConnectTimeoutError: If the relay does not acknowledge in time.
            SessionBusyError: If the relay reports the slot as occupied.
            ConnectError: For any other transport failure.
        """
        await self.disconnect()
        session_id = generate_session_id()
        await self._start(Role.TELEPROMPTER, session_id)
        return session_id

    async def connect_as_remote(self, session_id: str) -> None:
        """
        Join an existing session as a remote control.

        Args:
            session_id: Session code as typed by the user; case-insensitive.

        Raises:
            ConnectTimeoutError: If the relay does not acknowledge in time.
            SessionRejectedError: If the relay closes before acknowledging.
            ConnectError: For any other transport failure.
        """
        await self.disconnect()
        await self._start(Role.REMOTE, normalize_session_id(session_id))

    async def _start(self, role: Role, session_id: str) -> None:
        self._role = role
        self._session_id = session_id
        self._should_reconnect = True
        try:
            await self._open()
        except ConnectError:
            self._should_reconnect = False
            self._role = None
            self._session_id = None
            raise

    async def _open(self) -> None:
        self._cancel_reconnect()
        url = f"{self._relay_url}/session/{self._session_id}"
        logger.info(f"Connecting to relay as {self._role.value}: {url}")

        try:
            ws = await asyncio.wait_for(self._handshake(url), timeout=self._connect_timeout)
        except asyncio.TimeoutError:
            raise ConnectTimeoutError(self._connect_timeout)
        except ConnectError:
            raise
        except (OSError, WebSocketException) as e:
            raise ConnectError(f"Could not reach relay at {url}: {e}") from e

        self._ws = ws
        self._reader_task = asyncio.create_task(self._read_loop(ws))
        self._writer_task = asyncio.create_task(self._write_loop(ws))
        logger.info(f"{self._role.value.capitalize()} connected to relay, session: {self._session_id}")
        self._notify(self._connection_handlers, True)

    async def _handshake(self, url: str) -> Any:
        ws = await self._connector(url)
        try:
            await ws.send(encode(JoinMessage(role=self._role, session_id=self._session_id, heartbeat=True)))
            while True:
                raw = await ws.recv()
                if _frame_type(raw) == "joined":
                    return ws
                self._dispatch(raw)
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else None
            reason = e.rcvd.reason if e.rcvd is not None else ""
            if code == CloseCode.SLOT_OCCUPIED:
                raise SessionBusyError(code, reason) from e
            raise SessionRejectedError(code, reason) from e
        except asyncio.CancelledError:
            asyncio.ensure_future(ws.close())
            raise

    # ===== Reading and writing =====

    async def _read_loop(self, ws: Any) -> None:
        try:
            while True:
                raw = await ws.recv()
                self._dispatch(raw)
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else None
            logger.info(f"Disconnected from relay (code={code})")
        self._on_transport_closed(ws)

    async def _write_loop(self, ws: Any) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            while self._commands or self._pending_state is not None:
                if self._commands:
                    text = self._commands.popleft()
                else:
                    text, self._pending_state = self._pending_state, None
                try:
                    await ws.send(text)
                except ConnectionClosed:
                    # The read loop observes the close and takes over.
                    return

    def _dispatch(self, raw: Union[str, bytes]) -> None:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
            logger.warning("Dropping malformed frame from relay")
            return
        if not isinstance(data, dict):
            logger.warning("Dropping non-object frame from relay")
            return

        msg_type = data.get("type")
        match msg_type:
            case "state":
                state = parse_playback_state(data)
                if state is None:
                    logger.warning("Dropping invalid state frame")
                    return
                self._notify(self._state_handlers, state)
            case "command":
                self._dispatch_command(data.get("payload"))
            case _ if msg_type in COMMAND_TYPES:
                self._dispatch_command(data)
            case "peer_connected" | "peer_disconnected":
                try:
                    role = Role(data.get("role"))
                except ValueError:
                    logger.warning(f"Dropping {msg_type} notice with unknown role {data.get('role')!r}")
                    return
                logger.info(f"Peer {role.value} {'connected' if msg_type == 'peer_connected' else 'disconnected'}")
                self._notify(self._peer_handlers, role, msg_type == "peer_connected")
            case "ping":
                self._enqueue_command(encode(PongMessage()))
            case "joined":
                logger.debug("Duplicate join acknowledgement ignored")
            case "error":
                logger.error(f"Relay error: {data.get('message')}")
            case _:
                logger.debug(f"Unknown message type: {msg_type}")

    def _dispatch_command(self, data: Any) -> None:
        command = parse_remote_command(data)
        if command is None:
            logger.warning(f"Dropping invalid command: {data!r}")
            return
        self._notify(self._message_handlers, command)

    # ===== Sending =====

    def send_command(self, command: Union[BaseModel, dict]) -> None:
        """Send a command to the teleprompter; a no-op when not connected."""
        if not self.is_connected:
            return
        if isinstance(command, dict):
            parsed = parse_remote_command(command)
            if parsed is None:
                logger.warning(f"Refusing to send invalid command: {command!r}")
                return
            command = parsed
        self._enqueue_command(encode(CommandMessage(payload=command)))

    def broadcast_state(self, state: PlaybackState) -> None:
        """Send a state snapshot to the remotes; a no-op when not connected."""
        if not self.is_connected:
            return
        self._pending_state = encode(StateMessage(payload=state))
        self._wakeup.set()

    def _enqueue_command(self, text: str) -> None:
        if len(self._commands) >= self._max_pending_commands:
            logger.warning("Outbound command queue full, dropping command")
            return
        self._commands.append(text)
        self._wakeup.set()

    # ===== Reconnection and teardown =====

    def _on_transport_closed(self, ws: Any) -> None:
        if ws is not self._ws:
            return
        self._ws = None
        if self._writer_task is not None:
            self._writer_task.cancel()
            self._writer_task = None
        self._reader_task = None
        # Frames queued for the dead socket must not leak into the next one.
        self._commands.clear()
        self._pending_state = None
        self._wakeup.clear()
        self._notify(self._connection_handlers, False)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if not self._should_reconnect or self._session_id is None:
            return
        self._cancel_reconnect()
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay())

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self._reconnect_delay)
        if not self._should_reconnect:
            return
        logger.info("Attempting to reconnect to relay...")
        try:
            await self._open()
        except ConnectError as e:
            logger.warning(f"Reconnect failed: {e}")
            self._schedule_reconnect()

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def disconnect(self) -> None:
        """Close the link and forget the session. Safe to call repeatedly."""
        self._should_reconnect = False
        self._cancel_reconnect()

        ws, self._ws = self._ws, None
        for task in (self._reader_task, self._writer_task):
            if task is not None and task is not asyncio.current_task():
                task.cancel()
        self._reader_task = None
        self._writer_task = None
        self._commands.clear()
        self._pending_state = None

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing relay connection: {e}")
            logger.info(f"Disconnected from relay session {self._session_id}")
            self._notify(self._connection_handlers, False)

        self._session_id = None
        self._role = None


def _frame_type(raw: Union[str, bytes]) -> Optional[str]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
        return None
    return data.get("type") if isinstance(data, dict) else None
