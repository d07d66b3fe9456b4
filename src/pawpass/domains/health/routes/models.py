"""Request and response models for the HTTP surface."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class AlertOut(BaseModel):
    id: str
    entity_id: str
    category: str
    title: str
    description: str
    due_date: date
    days_remaining: int
    severity: str
    action_label: str
    action_target: str


class AlertsResponse(BaseModel):
    entity_id: str
    alerts: list[AlertOut]
    total: int
    counts_by_severity: dict[str, int]
    skipped: int = 0


class CreateShareRequest(BaseModel):
    """A new share link request.

    ``permissions`` is validated by the permission policy rather than by
    pydantic so that unknown groups and non-boolean values are reported
    with the offending field name.
    """

    entity_id: str = Field(..., min_length=1)
    permissions: dict[str, Any]


class ShareOut(BaseModel):
    id: str
    entity_id: str
    permissions: dict[str, bool]
    active: bool
    status: str
    created_at: datetime
    expires_at: datetime
    accessed_count: int
    last_accessed_at: datetime | None = None
    revoked_at: datetime | None = None


class CreatedShareOut(ShareOut):
    token: str
    url: str


class ShareListResponse(BaseModel):
    entity_id: str
    count: int
    shares: list[ShareOut]


class ErrorResponse(BaseModel):
    status: str = "error"
    error: str
    field: str | None = None
    reason: str | None = None


def error_responses(*status_codes: int) -> dict[int | str, dict[str, Any]]:
    """OpenAPI ``responses=`` entries for the engine errors a route can map to."""
    return {code: {"model": ErrorResponse} for code in status_codes}
