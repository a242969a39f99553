"""Pydantic models shared across API and storage.

Beginner terms used in this file:
- Model: a typed schema class used for validation/serialization.
- Epoch seconds: integer seconds since 1970-01-01T00:00:00Z.
"""

from __future__ import annotations

from pydantic import BaseModel

# Task status that blocks new tracker entries.
CLOSED_STATUS = "CLOSED"


class TrackerEntry(BaseModel):
    """One stored row of hours logged against a task."""

    tracker_id: int
    taskid: int
    hours: int
    # Both timestamps are epoch seconds.
    created_at: int
    updated_at: int


class UpdatedTracker(BaseModel):
    """Response body for PUT /update/{tracker_id}."""

    tracker_id: int
    taskid: int
    hours: int
    updated_at: int


class CreateTrackerRequest(BaseModel):
    """Request body for POST /mytime/tracker."""

    taskid: int
    # No range check: zero and negative values are stored as given.
    hours: int


class UpdateTrackerRequest(BaseModel):
    hours: int


class TotalHoursResponse(BaseModel):
    total_hours: int


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
