"""Persisted registry schemas.

These shapes are read and written by external collaborators (the investigator
flips status entries and deletes pending queues), so field names are stable.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field

from ..models import ErrorStatus


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# Naive timestamps written by other tools are taken as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class SeenErrorEntry(BaseModel):
    first_seen: UtcDatetime
    last_seen: UtcDatetime
    occurrence_count: int = Field(default=1, ge=1)
    service_name: str = ""
    error_type: str = ""


class StatusTimestamps(BaseModel):
    created_at: UtcDatetime
    started_at: UtcDatetime | None = None
    completed_at: UtcDatetime | None = None


class StatusEntry(BaseModel):
    status: ErrorStatus = ErrorStatus.PENDING
    service: str = ""
    error_type: str = ""
    timestamps: StatusTimestamps


class PendingQueueEntry(BaseModel):
    signature: str
    first_seen: UtcDatetime
    occurrence_count: int = Field(default=1, ge=1, description="Count when the error was queued.")
    severity: str = ""
    error_type: str = ""
    message: str = ""
    traceback: str = ""
    resource_labels: dict[str, str] = Field(default_factory=dict)
    sample: dict[str, Any] = Field(default_factory=dict, description="Raw provider record.")


class PendingQueue(BaseModel):
    """Hand-off file consumed by the investigation collaborator."""

    service: str
    generated_at: UtcDatetime
    errors: list[PendingQueueEntry] = Field(default_factory=list)


class PollCheckpoint(BaseModel):
    last_poll_time: UtcDatetime
    errors_found: int = 0
