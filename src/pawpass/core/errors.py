"""Typed error taxonomy shared by the alert engine and the sharing service.

Entry points (MCP tools, HTTP routes) translate these into typed results;
none of them is allowed to escape to the host process.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(EngineError):
    """Bad input shape or range, reported with a field-level reason."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class NotFoundError(EngineError):
    """Unknown entity or share link."""


class AggregationError(EngineError):
    """One or more record sources failed during aggregation."""

    def __init__(self, entity_id: str, failed_sources: list[str]) -> None:
        super().__init__(
            f"Aggregation failed for entity {entity_id}: "
            f"{', '.join(failed_sources) or 'unknown source'}"
        )
        self.entity_id = entity_id
        self.failed_sources = failed_sources


class ConflictError(EngineError):
    """A uniqueness conflict while persisting (e.g. share token collision)."""


def error_payload(exc: EngineError) -> dict[str, object]:
    """Typed, trace-free result body for a caller-facing error."""
    payload: dict[str, object] = {"status": "error", "error": type(exc).__name__}
    if isinstance(exc, ValidationError):
        payload.update(exc.as_dict())
    elif isinstance(exc, AggregationError):
        payload["reason"] = "alerts unavailable"
    else:
        payload["reason"] = str(exc)
    return payload
