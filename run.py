"""Run the teleprompter relay FastAPI application with uvicorn."""

import uvicorn

from src.application.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "src.application.api:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        ws_ping_interval=settings.heartbeat_interval,
        ws_ping_timeout=settings.heartbeat_interval,
    )
