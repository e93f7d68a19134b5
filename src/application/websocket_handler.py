import asyncio
import logging

from starlette.websockets import WebSocketDisconnect

from ..domain.entities import (
    CloseCode,
    ForwardFrame,
    JoinFrame,
    JoinedMessage,
    PeerConnectedMessage,
    PeerDisconnectedMessage,
    PongFrame,
    Role,
    SlotOccupiedError,
    classify_frame,
    encode,
    normalize_session_id,
)
from ..domain.interfaces.session_registry import SessionRegistry
from ..infrastructure.starlette_connection import StarletteConnection

logger = logging.getLogger(__name__)


class WebSocketHandler:
    """Per-connection relay loop.

    A connection starts unjoined and only a ``join`` frame is acted on.
    Once joined, ``state`` frames from the teleprompter and command frames
    from remotes are forwarded verbatim to the other side of the session.
    Anything else is dropped.
    """

    def __init__(self, registry: SessionRegistry, connection: StarletteConnection):
        self._registry = registry
        self._connection = connection

    async def handle_websocket(self) -> None:
        # Note: websocket.accept() is called by the controller before this
        connection = self._connection
        send_task = asyncio.create_task(connection.send_loop(), name=f"send-{connection.connection_id}")
        receive_task = asyncio.create_task(self._receive_loop(), name=f"receive-{connection.connection_id}")
        done, pending = await asyncio.wait(
            {send_task, receive_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        try:
            for task in done:
                exc = task.exception()
                if exc:
                    raise exc
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected: {connection!r}")
        except Exception as e:
            logger.error(f"WebSocket error on {connection!r}: {e}", exc_info=True)
        finally:
            connection.mark_closed()
            self._leave()
            for t in pending:
                t.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if not send_task.done() or send_task.cancelled() or send_task.exception() is not None:
                try:
                    await connection.websocket.close()
                except Exception as e:
                    logger.debug(f"Error closing WebSocket: {e}")
            logger.info(f"WebSocket connection closed: {connection!r}")

    async def _receive_loop(self) -> None:
        """Receive frames from the client until it disconnects."""
        websocket = self._connection.websocket
        while True:
            data = await websocket.receive()
            if data.get("type") == "websocket.disconnect":
                logger.info(f"Client {self._connection.connection_id} disconnected (code={data.get('code')})")
                break

            text = data.get("text")
            if text is None:
                logger.debug(f"Dropping binary frame from {self._connection.connection_id}")
                continue

            self._connection.is_alive = True
            self.handle_frame(text)

    def handle_frame(self, text: str) -> None:
        """Classify one text frame and act on it according to the connection state."""
        connection = self._connection
        frame = classify_frame(text)

        match frame:
            case PongFrame():
                return
            case JoinFrame() if connection.role is None:
                self._join(frame)
            case ForwardFrame() if connection.role is not None:
                self._forward(frame)
            case _:
                logger.debug(f"Dropping frame from {connection!r}: {text[:80]!r}")

    def _join(self, frame: JoinFrame) -> None:
        connection = self._connection
        if frame.session_id and normalize_session_id(frame.session_id) != connection.session_id:
            logger.warning(
                f"Join from {connection.connection_id} names session {frame.session_id}, "
                f"using path session {connection.session_id}"
            )

        try:
            ack = self._registry.register(connection.session_id, connection, frame.role)
        except SlotOccupiedError as e:
            connection.close(CloseCode.SLOT_OCCUPIED, str(e))
            return

        connection.heartbeat = frame.heartbeat

        connection.send_text(encode(JoinedMessage(role=ack.role, session_id=ack.session_id, peers=len(ack.peers))))
        for peer in ack.peers:
            peer.send_text(encode(PeerConnectedMessage(role=frame.role)))
            connection.send_text(encode(PeerConnectedMessage(role=peer.role)))

    def _forward(self, frame: ForwardFrame) -> None:
        connection = self._connection
        if frame.kind == "state" and connection.role != Role.TELEPROMPTER:
            logger.debug(f"Dropping state frame from non-teleprompter {connection!r}")
            return
        if frame.kind == "command" and connection.role != Role.REMOTE:
            logger.debug(f"Dropping command frame from non-remote {connection!r}")
            return

        for destination in self._registry.route(connection):
            destination.send_text(frame.raw)

    def _leave(self) -> None:
        connection = self._connection
        peers = self._registry.unregister(connection)
        if connection.role is None:
            return
        notice = encode(PeerDisconnectedMessage(role=connection.role))
        for peer in peers:
            peer.send_text(notice)
