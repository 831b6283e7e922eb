"""
Tests for Server Configuration
"""

import logging

import pytest

from roomsync.config import Settings, load_settings


def test_defaults():
    """Test settings with an empty environment."""
    settings = load_settings({})

    assert settings == Settings()
    assert settings.data_dir is None
    assert settings.log_level_value == logging.INFO


def test_environment_overrides():
    """Test reading every variable."""
    settings = load_settings(
        {
            "ROOMSYNC_DATA_DIR": "/var/lib/roomsync",
            "WEBSOCKET_HOST": "127.0.0.1",
            "WEBSOCKET_PORT": "9001",
            "HTTP_HOST": "127.0.0.2",
            "HTTP_PORT": "9002",
            "ROOMSYNC_DB_TIMEOUT": "0.5",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.data_dir == "/var/lib/roomsync"
    assert settings.ws_host == "127.0.0.1"
    assert settings.ws_port == 9001
    assert settings.http_host == "127.0.0.2"
    assert settings.http_port == 9002
    assert settings.db_timeout == 0.5
    assert settings.log_level_value == logging.DEBUG


def test_invalid_values():
    """Test that bad numbers and levels raise ValueError."""
    with pytest.raises(ValueError):
        load_settings({"WEBSOCKET_PORT": "eighty"})

    with pytest.raises(ValueError):
        load_settings({"LOG_LEVEL": "chatty"}).log_level_value
