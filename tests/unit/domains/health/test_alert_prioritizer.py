"""Tests for the alert prioritizer — severity, ranking, horizon, presentation."""

from __future__ import annotations

import random
from datetime import date, datetime, timedelta, timezone

import pytest

from pawpass.domains.health.domain_logic.alert_models import (
    DEFAULT_ALERT_LIMIT,
    DUE_SOON_THRESHOLD_DAYS,
    OVERDUE_THRESHOLD_DAYS,
    TimelineItem,
)
from pawpass.domains.health.domain_logic.alert_prioritizer import (
    AlertPrioritizer,
    build_alert,
    days_remaining,
    prioritize,
    severity_for,
)

TODAY = date(2026, 3, 10)


def _item(record_id: str, days: int | None, category: str = "vaccination",
          reason: str | None = "next_dose", label: str = "Rabies") -> TimelineItem:
    return TimelineItem(
        record_id=record_id,
        entity_id="pet-1",
        category=category,
        label=label,
        due_date=TODAY + timedelta(days=days) if days is not None else None,
        due_reason=reason if days is not None else None,
    )


class TestSeverity:
    @pytest.mark.parametrize("days,expected", [
        (-30, "high"), (-1, "high"), (0, "high"),
        (1, "medium"), (DUE_SOON_THRESHOLD_DAYS, "medium"),
        (DUE_SOON_THRESHOLD_DAYS + 1, "low"), (90, "low"),
    ])
    def test_by_days_remaining(self, days, expected):
        assert severity_for(days, "vaccination") == expected

    def test_medical_is_always_high(self):
        assert severity_for(60, "medical") == "high"

    def test_days_remaining_is_calendar_days(self):
        late_evening = datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc)
        assert days_remaining(date(2026, 3, 11), late_evening) == 1
        assert days_remaining(date(2026, 3, 9), TODAY) == -1


class TestRanking:
    def test_filters_items_without_due_date(self):
        report = prioritize([_item("a", None), _item("b", 3)], TODAY)
        assert [a.id for a in report.alerts] == ["b"]

    def test_sorted_by_days_remaining(self):
        report = prioritize([_item("late", 10), _item("overdue", -2), _item("soon", 1)], TODAY)
        assert [a.id for a in report.alerts] == ["overdue", "soon", "late"]
        assert all(
            x.days_remaining <= y.days_remaining
            for x, y in zip(report.alerts, report.alerts[1:])
        )

    def test_order_and_severity_across_thresholds(self):
        days = [-2, OVERDUE_THRESHOLD_DAYS, 3, 10]
        assert 3 <= DUE_SOON_THRESHOLD_DAYS < 10
        items = [_item(f"d{d}", d) for d in days]
        random.Random(3).shuffle(items)
        report = prioritize(items, TODAY)
        assert [a.days_remaining for a in report.alerts] == days
        assert [a.severity for a in report.alerts] == ["high", "high", "medium", "low"]

    def test_tie_broken_by_category_then_id(self):
        items = [
            _item("m2", 4, category="medication", reason="refill"),
            _item("v1", 4),
            _item("x1", 4, category="medical", reason="follow_up"),
            _item("m1", 4, category="medication", reason="refill"),
            _item("w1", 4, category="weight", reason=None),
        ]
        report = prioritize(items, TODAY)
        assert [a.id for a in report.alerts] == ["x1", "v1", "m1", "m2", "w1"]

    def test_ordering_ignores_input_order(self):
        items = [_item(f"r{i}", d) for i, d in enumerate([5, -1, 0, 12, 5, 3])]
        expected = [a.id for a in prioritize(items, TODAY).alerts]
        shuffled = items[:]
        random.Random(7).shuffle(shuffled)
        assert [a.id for a in prioritize(shuffled, TODAY).alerts] == expected

    def test_idempotent(self):
        items = [_item("a", 2), _item("b", -4)]
        assert prioritize(items, TODAY) == prioritize(items, TODAY)

    def test_top_is_prefix_of_full_ranking(self):
        items = [_item(f"r{i}", i) for i in range(12)]
        report = prioritize(items, TODAY)
        assert len(report.alerts) == 12
        assert report.top() == report.alerts[:DEFAULT_ALERT_LIMIT]
        assert report.top(3) == report.alerts[:3]
        assert report.top(0) == []

    def test_counts_by_severity(self):
        report = prioritize([_item("a", -1), _item("b", 3), _item("c", 30)], TODAY)
        assert report.counts_by_severity() == {"high": 1, "medium": 1, "low": 1}


class TestHorizon:
    def test_far_items_dropped_overdue_kept(self):
        items = [_item("far", 45), _item("near", 20), _item("old", -100)]
        report = AlertPrioritizer(horizon_days=30).prioritize(items, TODAY)
        assert [a.id for a in report.alerts] == ["old", "near"]

    def test_per_call_horizon_overrides(self):
        report = AlertPrioritizer(horizon_days=30).prioritize(
            [_item("near", 20)], TODAY, horizon_days=7
        )
        assert report.alerts == []

    def test_negative_horizon_rejected(self):
        with pytest.raises(ValueError):
            AlertPrioritizer(horizon_days=-1)


class TestMalformed:
    def test_malformed_items_are_skipped(self, caplog):
        bad = TimelineItem(
            record_id="bad", entity_id="pet-1", category="vaccination", label="X",
            due_date="2026-03-12",  # type: ignore[arg-type]
        )
        report = prioritize([bad, _item("good", 1)], TODAY)
        assert [a.id for a in report.alerts] == ["good"]
        assert report.skipped == 1
        assert "Skipping malformed timeline item bad" in caplog.text


class TestBuildAlert:
    def test_vaccination_presentation(self):
        alert = build_alert(_item("v1", 5, label="FVRCP"), TODAY)
        assert alert.title == "FVRCP Due"
        assert alert.description == "FVRCP is due in 5 days"
        assert alert.action_label == "Book"
        assert alert.action_target == "/pets/pet-1/health/vaccinations"
        assert alert.severity == "medium"

    def test_overdue_refill(self):
        alert = build_alert(_item("m1", -1, category="medication", reason="refill",
                                  label="Gabapentin"), TODAY)
        assert alert.description == "Gabapentin refill is overdue by 1 day"
        assert alert.overdue

    def test_course_end_and_follow_up(self):
        end = build_alert(_item("m1", 0, category="medication", reason="course_end",
                                label="Carprofen"), TODAY)
        assert end.description == "Carprofen course ends today"
        follow = build_alert(_item("x1", 20, category="medical", reason="follow_up",
                                   label="Dental cleaning"), TODAY)
        assert follow.title == "Dental cleaning Follow-up Due"
        assert follow.severity == "high"

    def test_requires_due_date(self):
        with pytest.raises(ValueError):
            build_alert(_item("a", None), TODAY)
