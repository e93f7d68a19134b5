"""Relay controller coordinating connections, the registry and periodic sweeps."""

import asyncio
import logging
from typing import Callable

from fastapi import WebSocket

from ..domain.entities import CloseCode, PingMessage, encode, normalize_session_id
from ..domain.interfaces.session_registry import SessionRegistry
from ..infrastructure.starlette_connection import StarletteConnection
from .websocket_handler import WebSocketHandler

logger = logging.getLogger(__name__)


class RelayController:
    """
    Controller for the relay service.

    Owns the session registry and the set of open connections, and runs
    the heartbeat and idle-session sweeps. Both sweeps are plain
    synchronous passes scheduled on the same event loop as the connection
    handlers, so they never interleave with a registration or route call.
    """

    def __init__(
        self,
        session_registry: SessionRegistry,
        heartbeat_interval: float = 30.0,
        session_max_idle: float = 3600.0,
        session_sweep_interval: float = 60.0,
    ):
        """
        Initialize the controller with injected dependencies.

        Args:
            session_registry: Registry holding session state
            heartbeat_interval: Seconds between liveness checks
            session_max_idle: Seconds of inactivity before a session expires
            session_sweep_interval: Seconds between idle-session sweeps
        """
        self.session_registry = session_registry
        self.heartbeat_interval = heartbeat_interval
        self.session_max_idle = session_max_idle
        self.session_sweep_interval = session_sweep_interval
        self.connections: set[StarletteConnection] = set()
        self._tasks: list[asyncio.Task] = []

        logger.info("RelayController initialized")

    async def start(self) -> None:
        """Start the periodic heartbeat and idle-session tasks."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run_periodic(self.heartbeat_interval, self.heartbeat), name="relay-heartbeat"),
            asyncio.create_task(self._run_periodic(self.session_sweep_interval, self.sweep_sessions), name="relay-sweep"),
        ]
        logger.info(
            f"Relay started (heartbeat every {self.heartbeat_interval:g}s, "
            f"session expiry after {self.session_max_idle:g}s idle)"
        )

    async def stop(self) -> None:
        """Cancel the periodic tasks."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Relay periodic tasks stopped")

    async def handle_websocket_connection(self, websocket: WebSocket, session_id: str) -> None:
        session_id = normalize_session_id(session_id)
        await websocket.accept()
        if not session_id:
            await websocket.close(code=CloseCode.BAD_PATH, reason="Invalid path. Use /session/{sessionId}")
            return

        connection = StarletteConnection(websocket, session_id=session_id)
        logger.info(f"New connection {connection.connection_id} for session {session_id} from {websocket.client}")
        self.session_registry.touch(session_id)
        self.connections.add(connection)

        handler = WebSocketHandler(registry=self.session_registry, connection=connection)
        try:
            await handler.handle_websocket()
        finally:
            self.connections.discard(connection)

    def heartbeat(self) -> None:
        """Close connections that missed the previous ping, then ping the rest.

        Only connections that asked for application-level pings in their
        ``join`` take part; everyone else is covered by the server's
        WebSocket ping/pong, whose failures arrive as a disconnect.
        """
        ping = encode(PingMessage())
        for connection in list(self.connections):
            if not connection.is_open or not connection.heartbeat:
                continue
            if not connection.is_alive:
                logger.warning(f"Connection {connection.connection_id} failed heartbeat, terminating")
                connection.close(1001, "Heartbeat timeout")
                continue
            connection.is_alive = False
            connection.send_text(ping)

    def sweep_sessions(self) -> None:
        expired = self.session_registry.sweep(self.session_max_idle)
        if not expired:
            return
        logger.info(f"Expired {len(expired)} idle session(s): {', '.join(expired)}")

        # The registry only knows joined participants.
        expired_ids = set(expired)
        for connection in list(self.connections):
            if connection.role is None and connection.session_id in expired_ids and connection.is_open:
                connection.close(CloseCode.SESSION_EXPIRED, "Session expired")

    async def _run_periodic(self, interval: float, action: Callable[[], None]) -> None:
        """
        Run ``action`` every ``interval`` seconds until cancelled.

        Args:
            interval: Seconds between runs
            action: Synchronous pass over relay state
        """
        while True:
            try:
                await asyncio.sleep(interval)
                action()
            except asyncio.CancelledError:
                logger.debug(f"Periodic task {action.__name__} cancelled")
                break
            except Exception as e:
                logger.error(f"Error in periodic task {action.__name__}: {e}", exc_info=True)

    def get_health_status(self) -> dict:
        """
        Get relay health status.

        Returns:
            Dict containing health status information
        """
        return {
            "status": "healthy",
            "sessions": getattr(self.session_registry, "session_count", None),
            "connections": len(self.connections),
            "providers": {
                "session_registry": type(self.session_registry).__name__,
            },
        }
