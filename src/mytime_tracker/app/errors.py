"""Error taxonomy for the tracker service.

Beginner terms used in this file:
- Domain error: an exception that already knows which HTTP status it maps to.
- StorageError: raised by storage backends; route handlers turn it into an
  InternalError so database details never reach the client.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for errors rendered as `{"error": message}` responses."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    """Client-caused failure (missing task, closed task)."""

    status_code = 400


class NotFoundError(TrackerError):
    status_code = 404


class InternalError(TrackerError):
    status_code = 500


class StorageError(Exception):
    """Store/connectivity failure raised by a storage backend."""
