"""
Field Room - FastAPI Sync Server

One shared room per process:
- WebSocket relay for chat, presence, notes, meetings, drawings and state
- AI participant answering mentions via a chat-completions gateway
- Health and state snapshot endpoints
"""

import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from fieldroom.config import RoomConfig
from fieldroom.logging_setup import configure_logging
from fieldroom.websocket.handlers import RoomHandler, RoomServices, build_services

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[RoomConfig] = None,
    services: Optional[RoomServices] = None,
) -> FastAPI:
    """Build the room application."""
    config = config or (services.config if services else RoomConfig.from_env())
    services = services or build_services(config)
    handler = RoomHandler(services)
    started_at = time.monotonic()

    app = FastAPI(
        title="Field Room Sync Service",
        description="Shared real-time room for humans and AI participants",
        version="1.0.0",
    )
    app.state.services = services
    app.state.handler = handler

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.on_event("startup")
    async def startup_event():
        """Prepare the workspace and load persisted notes."""
        await services.persistence.ensure()
        await services.notes.load()
        logger.info(f"Config: {json.dumps(config.redacted())}")
        logger.info(f"AI: {config.ai_user_id} via {config.completion_api_url}")

    @app.on_event("shutdown")
    async def shutdown_event():
        await services.ai.wait_idle()
        await services.ai.client.aclose()

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "clients": services.registry.count(),
            "notes": len(services.notes),
            "activeMeetings": len(services.meetings),
            "workspace": config.workspace_path,
            "uptime": time.monotonic() - started_at,
        }

    @app.get("/state")
    async def get_state():
        """Persisted shared state snapshot."""
        return await services.persistence.load_state()

    @app.websocket("/")
    async def room_websocket(websocket: WebSocket):
        """
        WebSocket endpoint for the room.

        See fieldroom.websocket.handlers for the message protocol.
        """
        await handler.handle_connection(websocket)

    @app.websocket("/ws")
    async def room_websocket_alias(websocket: WebSocket):
        await handler.handle_connection(websocket)

    return app


def main():
    import uvicorn

    config = RoomConfig.from_env()
    configure_logging(config.log_level)
    logger.info(f"Listening on {config.host}:{config.port}")
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
