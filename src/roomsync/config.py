"""
Server Configuration

Settings are read from environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .storage import DEFAULT_DB_TIMEOUT


@dataclass
class Settings:
    """
    Runtime settings for the room server.

    Attributes:
        data_dir: Directory holding one database per room; None keeps every
            room in memory
        ws_host: WebSocket host address to bind to
        ws_port: WebSocket port to listen on
        http_host: HTTP host address to bind to
        http_port: HTTP port to listen on
        db_timeout: Seconds a write waits on a locked database
        log_level: Logging level name
    """

    data_dir: Optional[str] = None
    ws_host: str = "0.0.0.0"
    ws_port: int = 8080
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    db_timeout: float = DEFAULT_DB_TIMEOUT
    log_level: str = "INFO"

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown LOG_LEVEL: {self.log_level}")
        return level


def load_settings(environ: Mapping[str, str] = None) -> Settings:
    """
    Build settings from the environment.

    Args:
        environ: Variables to read, defaults to os.environ

    Returns:
        Settings: The parsed settings

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    env = os.environ if environ is None else environ
    return Settings(
        data_dir=env.get("ROOMSYNC_DATA_DIR") or None,
        ws_host=env.get("WEBSOCKET_HOST", "0.0.0.0"),
        ws_port=int(env.get("WEBSOCKET_PORT", "8080")),
        http_host=env.get("HTTP_HOST", "0.0.0.0"),
        http_port=int(env.get("HTTP_PORT", "8000")),
        db_timeout=float(env.get("ROOMSYNC_DB_TIMEOUT", str(DEFAULT_DB_TIMEOUT))),
        log_level=env.get("LOG_LEVEL", "INFO"),
    )
