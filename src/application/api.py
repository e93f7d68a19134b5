"""FastAPI application entry point for the relay."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from ..domain.entities import CloseCode
from ..infrastructure.in_memory_session_registry import InMemorySessionRegistry
from .config import Settings, settings
from .controller import RelayController

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(config: Settings = settings, controller: Optional[RelayController] = None) -> FastAPI:
    """Build the relay application.

    Args:
        config: Settings to read app metadata and relay intervals from.
        controller: Pre-built controller, mainly for tests.

    Returns:
        FastAPI: The configured application.
    """
    if controller is None:
        controller = RelayController(
            session_registry=InMemorySessionRegistry(),
            heartbeat_interval=config.heartbeat_interval,
            session_max_idle=config.session_max_idle,
            session_sweep_interval=config.session_sweep_interval,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await controller.start()
        try:
            yield
        finally:
            await controller.stop()

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        debug=config.debug,
        lifespan=lifespan,
    )
    app.state.controller = controller

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return controller.get_health_status()

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str):
        """Describe a live session.

        Args:
            session_id: Session code, case-insensitive.

        Returns:
            Whether a teleprompter is present, the number of remotes and
            the seconds since the last activity.
        """
        try:
            return controller.session_registry.get_summary(session_id).model_dump()
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.websocket("/session/{session_id}")
    async def session_endpoint(websocket: WebSocket, session_id: str):
        """
        WebSocket endpoint pairing a teleprompter with its remotes.

        Connection lifecycle:
        1. Client connects to /session/{sessionId}
        2. Client sends {"type": "join", "role": "teleprompter" | "remote"}
        3. Relay answers {"type": "joined"} and emits peer_connected notices
        4. Teleprompter sends state frames, remotes send command frames;
           each is forwarded unmodified to the other side
        5. On disconnect, peers receive peer_disconnected

        Close codes: 4000 bad path, 4001 slot occupied, 4002 session expired.
        """
        try:
            await controller.handle_websocket_connection(websocket, session_id)
        except Exception as e:
            logger.error(f"Error handling websocket connection: {e}", exc_info=True)

    @app.websocket("/{path:path}")
    async def invalid_path_endpoint(websocket: WebSocket, path: str):
        """Reject WebSocket connections on any other path."""
        logger.warning(f"Rejecting WebSocket connection on invalid path /{path}")
        await websocket.accept()
        await websocket.close(code=CloseCode.BAD_PATH, reason="Invalid path. Use /session/{sessionId}")

    return app


# Create the application instance served by uvicorn
app = create_app()
