"""Alert prioritizer — ranks due and overdue timeline items.

Severity is a pure function of ``days_remaining`` and category; ranking is
``days_remaining`` ascending, then category priority, then record id, so
identical inputs always give identical output. The clock is injected:
nothing here reads the system time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from pawpass.domains.health.domain_logic.alert_models import (
    CATEGORY_PRIORITY,
    DEFAULT_ALERT_LIMIT,
    DUE_SOON_THRESHOLD_DAYS,
    MEDICALLY_URGENT_CATEGORIES,
    OTHER_CATEGORY_PRIORITY,
    OVERDUE_THRESHOLD_DAYS,
    SEVERITIES,
    AlertItem,
    Severity,
    TimelineItem,
)

logger = logging.getLogger(__name__)

# Owner-app screen each category's action opens; {entity_id} is filled in.
_ACTION_TARGETS = {
    "vaccination": "/pets/{entity_id}/health/vaccinations",
    "medication": "/pets/{entity_id}/health/medications",
    "medical": "/pets/{entity_id}/health/visits",
}
_DEFAULT_ACTION_TARGET = "/pets/{entity_id}"

_ACTION_LABELS = {
    "vaccination": "Book",
    "medication": "Refill",
    "medical": "Schedule",
}

_TITLE_SUFFIX = {
    "next_dose": "Due",
    "refill": "Refill Due",
    "course_end": "Course Ends",
    "follow_up": "Follow-up Due",
}


def _as_date(now: date | datetime) -> date:
    return now.date() if isinstance(now, datetime) else now


def days_remaining(due_date: date, now: date | datetime) -> int:
    """Whole calendar days from ``now`` to ``due_date``; negative when overdue."""
    return (due_date - _as_date(now)).days


def severity_for(days: int, category: str) -> Severity:
    if days <= OVERDUE_THRESHOLD_DAYS or category in MEDICALLY_URGENT_CATEGORIES:
        return "high"
    if days <= DUE_SOON_THRESHOLD_DAYS:
        return "medium"
    return "low"


def category_rank(category: str) -> int:
    return CATEGORY_PRIORITY.get(category, OTHER_CATEGORY_PRIORITY)


def _plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def _describe(item: TimelineItem, days: int) -> str:
    if item.due_reason == "course_end":
        if days < 0:
            return f"{item.label} course ended {_plural_days(-days)} ago"
        if days == 0:
            return f"{item.label} course ends today"
        return f"{item.label} course ends in {_plural_days(days)}"

    if item.due_reason == "refill":
        what = f"{item.label} refill"
    elif item.due_reason == "follow_up":
        what = f"Follow-up for {item.label}"
    else:
        what = item.label

    if days < 0:
        return f"{what} is overdue by {_plural_days(-days)}"
    if days == 0:
        return f"{what} is due today"
    return f"{what} is due in {_plural_days(days)}"


def build_alert(item: TimelineItem, now: date | datetime) -> AlertItem:
    """Turn a timeline item with a due date into a presentation-ready alert.

    Raises:
        ValueError: If the item has no due date.
    """
    if item.due_date is None:
        raise ValueError(f"Timeline item {item.record_id} has no due date")

    days = days_remaining(item.due_date, now)
    suffix = _TITLE_SUFFIX.get(item.due_reason or "", "Due")
    return AlertItem(
        id=item.record_id,
        entity_id=item.entity_id,
        category=item.category,
        title=f"{item.label} {suffix}",
        description=_describe(item, days),
        due_date=item.due_date,
        days_remaining=days,
        severity=severity_for(days, item.category),
        action_label=_ACTION_LABELS.get(item.category, "View"),
        action_target=_ACTION_TARGETS.get(item.category, _DEFAULT_ACTION_TARGET).format(
            entity_id=item.entity_id
        ),
    )


def _sort_key(alert: AlertItem) -> tuple[int, int, str]:
    return (alert.days_remaining, category_rank(alert.category), alert.id)


@dataclass
class AlertReport:
    """Every ranked alert for one computation, plus what was skipped."""

    alerts: list[AlertItem] = field(default_factory=list)
    skipped: int = 0

    def top(self, n: int = DEFAULT_ALERT_LIMIT) -> list[AlertItem]:
        """The first ``n`` alerts of the full ranking."""
        return self.alerts[: max(n, 0)]

    def counts_by_severity(self) -> dict[str, int]:
        counts = {severity: 0 for severity in SEVERITIES}
        for alert in self.alerts:
            counts[alert.severity] += 1
        return counts

    def to_dict(self, limit: int = DEFAULT_ALERT_LIMIT) -> dict:
        return {
            "alerts": [a.to_dict() for a in self.top(limit)],
            "total": len(self.alerts),
            "counts_by_severity": self.counts_by_severity(),
            "skipped": self.skipped,
        }


class AlertPrioritizer:
    """Filters, scores and ranks timeline items into an :class:`AlertReport`.

    Usage::

        report = AlertPrioritizer().prioritize(timeline.items, now=today)
        report.top(5)
    """

    def __init__(self, horizon_days: int | None = None) -> None:
        if horizon_days is not None and horizon_days < 0:
            raise ValueError("horizon_days must be non-negative")
        self._horizon_days = horizon_days

    @property
    def horizon_days(self) -> int | None:
        return self._horizon_days

    def prioritize(
        self,
        items: Iterable[TimelineItem],
        now: date | datetime,
        *,
        horizon_days: int | None = None,
    ) -> AlertReport:
        """Rank every item that has a due date.

        Items further out than the horizon are dropped; overdue items are
        always kept. Malformed items are skipped and logged.
        """
        horizon = horizon_days if horizon_days is not None else self._horizon_days
        report = AlertReport()

        for item in items:
            if getattr(item, "due_date", None) is None:
                continue
            try:
                alert = build_alert(item, now)
            except (AttributeError, TypeError, ValueError) as exc:
                report.skipped += 1
                logger.warning(
                    "Skipping malformed timeline item %s: %s",
                    getattr(item, "record_id", "?"),
                    exc,
                )
                continue
            if (
                horizon is not None
                and alert.days_remaining > horizon
                and alert.days_remaining > OVERDUE_THRESHOLD_DAYS
            ):
                continue
            report.alerts.append(alert)

        report.alerts.sort(key=_sort_key)
        return report


def prioritize(
    items: Iterable[TimelineItem],
    now: date | datetime,
    *,
    horizon_days: int | None = None,
) -> AlertReport:
    """Module-level shortcut for ``AlertPrioritizer().prioritize``."""
    return AlertPrioritizer().prioritize(items, now, horizon_days=horizon_days)
