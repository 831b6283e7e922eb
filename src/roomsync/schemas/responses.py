"""
Response Schema Definitions

Contains the response type returned by room request handlers and the
functions for creating standard response bodies.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from ..errors import RoomSyncError

# Body reported for storage failures; internal details stay in the logs
STORAGE_FAILURE_MESSAGE = "storage failure"


@dataclass
class RoomResponse:
    """
    Result of a room request.

    Attributes:
        status: HTTP status code
        body: JSON-serializable response body
    """

    status: int = 200
    body: Dict[str, Any] = field(default_factory=dict)


def create_success_response(body: Dict[str, Any]) -> RoomResponse:
    """Create a 200 response."""
    return RoomResponse(status=200, body=body)


def create_error_response(status: int, error_message: str) -> RoomResponse:
    """
    Create an error response.

    Args:
        status: HTTP status code
        error_message: Error message text

    Returns:
        RoomResponse: {"error": error_message} with the given status
    """
    return RoomResponse(status=status, body={"error": error_message})


def create_response_for_error(error: RoomSyncError) -> RoomResponse:
    """
    Map an engine error to a response.

    Server-side failures get a generic message.
    """
    if error.status >= 500:
        return create_error_response(error.status, STORAGE_FAILURE_MESSAGE)
    return create_error_response(error.status, error.message)
