#!/usr/bin/env python3
"""
Room Sync Server

Hosts chat rooms over WebSocket and partnership rooms over HTTP.
"""

import asyncio
import logging
import sys

from .config import Settings, load_settings
from .http_server import HTTPServer
from .rooms import RoomManager
from .websocket_server import WebSocketServer

logger = logging.getLogger(__name__)


async def run_server(settings: Settings):
    """
    Run the WebSocket and HTTP servers until cancelled.

    Args:
        settings: Server settings
    """
    room_manager = RoomManager(settings.data_dir, settings.db_timeout)
    ws_server = WebSocketServer(room_manager, settings.ws_host, settings.ws_port)
    http_server = HTTPServer(
        room_manager, settings.http_host, settings.http_port
    )

    await ws_server.start()
    await http_server.start()
    logger.info("Room sync server is ready")

    try:
        # Wait indefinitely
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        await ws_server.stop()
        await http_server.stop()
        await room_manager.shutdown()
        logger.info("Room sync server stopped")


def main():
    """Main entry point for the room sync server."""
    try:
        settings = load_settings()
        level = settings.log_level_value
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Starting room sync server...")

    try:
        asyncio.run(run_server(settings))
    except KeyboardInterrupt:
        logger.info("Shutting down room sync server...")
        sys.exit(0)


if __name__ == "__main__":
    main()
