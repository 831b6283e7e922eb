"""
Error Taxonomy

Exceptions raised by the room engine. Each carries the status code the
request handler reports for it.
"""


class RoomSyncError(Exception):
    """Base class for room engine errors."""

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RoomSyncError):
    """A write carried a malformed or missing field. No state changed."""

    status = 400


class NotFoundError(RoomSyncError):
    """Unknown record id, resource path or room identifier."""

    status = 404


class PersistenceError(RoomSyncError):
    """A durable table operation failed."""

    status = 500


class TransportError(RoomSyncError):
    """A send to a subscriber failed. Never surfaced to callers."""

    status = 500
