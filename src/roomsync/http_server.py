"""
HTTP Server for Partnership Rooms

Serves every partnership room sub-resource under
/parties/tandem/{room_id}/... with aiohttp.
"""

import logging

from aiohttp import web

from .errors import RoomSyncError
from .rooms import RoomManager

logger = logging.getLogger(__name__)

ROOM_MANAGER_KEY = web.AppKey("room_manager", RoomManager)


async def health(request: web.Request) -> web.Response:
    """Liveness check"""
    manager = request.app[ROOM_MANAGER_KEY]
    return web.json_response({"ok": True, "rooms": manager.get_room_count()})


async def partnership_request(request: web.Request) -> web.Response:
    """Route a request to the partnership room named in the path"""
    manager = request.app[ROOM_MANAGER_KEY]
    room_id = request.match_info["room_id"]

    try:
        room = await manager.get_partnership_room(room_id)
    except RoomSyncError as e:
        logger.error(f"Cannot open partnership room {room_id}: {e}")
        message = "Not Found" if e.status == 404 else "Room unavailable"
        return web.json_response({"error": message}, status=e.status)

    body = await request.read() if request.can_read_body else None
    response = await room.on_request(
        request.method,
        request.match_info["tail"],
        request.query,
        body,
    )
    return web.json_response(response.body, status=response.status)


def create_app(room_manager: RoomManager) -> web.Application:
    """
    Create and configure the aiohttp application.

    Args:
        room_manager: Rooms served by this application

    Returns:
        web.Application: The configured application
    """
    app = web.Application()
    app[ROOM_MANAGER_KEY] = room_manager

    app.router.add_get("/health", health)
    app.router.add_route(
        "*", "/parties/tandem/{room_id}/{tail:.*}", partnership_request
    )
    return app


class HTTPServer:
    """
    HTTP server for partnership room requests.

    Runs the aiohttp application inside an existing event loop.
    """

    def __init__(self, room_manager: RoomManager, host: str, port: int):
        """
        Initialize the HTTP server.

        Args:
            room_manager: The room manager instance
            host: Host address to bind to
            port: Port to listen on
        """
        self.room_manager = room_manager
        self.host = host
        self.port = port
        self._runner = None

    async def start(self):
        """Start the HTTP server."""
        self._runner = web.AppRunner(create_app(self.room_manager))
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"HTTP server started on http://{self.host}:{self.port}")

    async def stop(self):
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            logger.info("HTTP server stopped")
