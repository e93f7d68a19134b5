"""Starlette WebSocket adapter for the relay connection protocol."""

import asyncio
import logging
import uuid
from typing import Optional

from starlette.websockets import WebSocket

from ..domain.entities.websocket_messages import Role

logger = logging.getLogger(__name__)

_CLOSE = object()


class StarletteConnection:
    """Relay connection wrapping a Starlette ``WebSocket``.

    Frames are put on a bounded outbound queue and written by
    ``send_loop``, so ``send_text`` and ``close`` never await. When the
    queue is full the newest frame is dropped.
    """

    def __init__(
        self,
        websocket: WebSocket,
        session_id: Optional[str] = None,
        connection_id: Optional[str] = None,
        max_queue: int = 256,
    ):
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex[:8]
        self.session_id = session_id
        self.role: Optional[Role] = None
        self.is_alive = True
        self.heartbeat = False
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._close_code = 1000
        self._close_reason = ""
        self._closing = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not (self._closing or self._closed)

    def send_text(self, text: str) -> None:
        if not self.is_open:
            return
        try:
            self._outbound.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(f"Connection {self.connection_id}: outbound queue full, dropping frame")

    def close(self, code: int = 1000, reason: str = "") -> None:
        if not self.is_open:
            return
        self._closing = True
        self._close_code = int(code)
        self._close_reason = reason
        # Pending frames are discarded; the close must not wait behind them.
        while not self._outbound.empty():
            self._outbound.get_nowait()
        self._outbound.put_nowait(_CLOSE)

    def mark_closed(self) -> None:
        self._closed = True

    async def send_loop(self) -> None:
        """Write queued frames until a close is requested."""
        while True:
            item = await self._outbound.get()
            if item is _CLOSE:
                break
            await self.websocket.send_text(item)

        logger.info(
            f"Connection {self.connection_id}: closing with code {self._close_code} "
            f"({self._close_reason or 'no reason'})"
        )
        self._closed = True
        await self.websocket.close(code=self._close_code, reason=self._close_reason)

    def __repr__(self) -> str:
        role = self.role.value if self.role else "unjoined"
        return f"StarletteConnection(id={self.connection_id}, session={self.session_id}, role={role})"
