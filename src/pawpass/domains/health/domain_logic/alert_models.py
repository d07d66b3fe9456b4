"""Timeline and alert models, plus the severity policy constants."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Severity policy
# ---------------------------------------------------------------------------

# days_remaining at or below this is overdue (today counts as overdue).
OVERDUE_THRESHOLD_DAYS = 0

# days_remaining at or below this (and above overdue) is due soon.
DUE_SOON_THRESHOLD_DAYS = 7

# Categories that are always high severity, however far out.
MEDICALLY_URGENT_CATEGORIES = frozenset({"medical"})

# Tie-break among equal days_remaining: lower rank sorts first.
CATEGORY_PRIORITY = {
    "medical": 0,
    "vaccination": 1,
    "medication": 2,
}
OTHER_CATEGORY_PRIORITY = 3

DEFAULT_ALERT_LIMIT = 5

Severity = Literal["high", "medium", "low"]
SEVERITIES: tuple[Severity, ...] = ("high", "medium", "low")

DueReason = Literal["next_dose", "refill", "course_end", "follow_up"]


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimelineItem:
    """One normalised record on an entity's health timeline."""

    record_id: str
    entity_id: str
    category: str                       # vaccination | medication | medical | visit | weight
    label: str
    occurred_on: date | None = None
    due_date: date | None = None
    due_reason: DueReason | None = None
    details: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "entity_id": self.entity_id,
            "category": self.category,
            "label": self.label,
            "occurred_on": self.occurred_on.isoformat() if self.occurred_on else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "due_reason": self.due_reason,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class AlertItem:
    """A ranked, presentation-ready notice about a due or overdue record."""

    id: str
    entity_id: str
    category: str
    title: str
    description: str
    due_date: date
    days_remaining: int
    severity: Severity
    action_label: str
    action_target: str

    @property
    def overdue(self) -> bool:
        return self.days_remaining <= OVERDUE_THRESHOLD_DAYS

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date.isoformat(),
            "days_remaining": self.days_remaining,
            "severity": self.severity,
            "action_label": self.action_label,
            "action_target": self.action_target,
        }
