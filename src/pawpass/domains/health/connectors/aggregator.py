"""Temporal aggregator — merges an entity's record sources into one timeline.

Each category is a separate source in the record store. Sources are read
concurrently, each bounded by a timeout, under an all-or-nothing policy:
if any source fails or times out, the whole aggregation fails with an
:class:`AggregationError` naming every failed source. A partial timeline
could hide an overdue item, so none is returned.

Reads have no side effects; a cancelled aggregation simply discards
whatever its fetches returned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pawpass.core.errors import AggregationError, ValidationError
from pawpass.core.storage.models import (
    MEDICATION,
    TIMELINE_CATEGORIES,
    VACCINATION,
    VISIT,
    WEIGHT,
)
from pawpass.domains.health.connectors import RecordStore
from pawpass.domains.health.domain_logic.alert_models import TimelineItem
from pawpass.domains.health.domain_logic.rules import next_refill_date, parse_record_date

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 5.0

# Timeline category for a visit with a booked follow-up.
MEDICAL = "medical"

# Source name reported when the entity profile lookup fails.
PROFILE_SOURCE = "profile"


class MalformedRecordError(ValueError):
    """A record row that cannot be placed on the timeline."""


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def _optional_date(row: dict[str, Any], key: str) -> date | None:
    value = row.get(key)
    if value in (None, ""):
        return None
    try:
        return parse_record_date(value, key)
    except ValidationError as exc:
        raise MalformedRecordError(exc.reason) from None


def _require(row: dict[str, Any], key: str) -> Any:
    value = row.get(key)
    if value in (None, ""):
        raise MalformedRecordError(f"missing {key}")
    return value


def _vaccination_item(row: dict[str, Any], entity_id: str) -> TimelineItem:
    due = _optional_date(row, "next_due_date")
    return TimelineItem(
        record_id=str(_require(row, "id")),
        entity_id=entity_id,
        category=VACCINATION,
        label=str(_require(row, "vaccine_name")),
        occurred_on=_optional_date(row, "administered_date"),
        due_date=due,
        due_reason="next_dose" if due else None,
        details={"veterinarian": row.get("veterinarian")},
    )


def _medication_item(row: dict[str, Any], entity_id: str) -> TimelineItem:
    start = _optional_date(row, "start_date")
    end = _optional_date(row, "end_date")
    last_refill = _optional_date(row, "last_refill_date")
    every = row.get("refill_every_days")

    due: date | None = None
    reason = None
    # Discontinued medications are history, never due.
    if row.get("is_active") is False:
        due = None
    elif row.get("is_ongoing") and every is not None:
        anchor = last_refill or start
        if anchor is None:
            raise MalformedRecordError("ongoing medication without a start date")
        try:
            due = next_refill_date(anchor, every)
        except ValidationError as exc:
            raise MalformedRecordError(exc.reason) from None
        reason = "refill"
    elif end is not None:
        due, reason = end, "course_end"

    return TimelineItem(
        record_id=str(_require(row, "id")),
        entity_id=entity_id,
        category=MEDICATION,
        label=str(_require(row, "name")),
        occurred_on=start,
        due_date=due,
        due_reason=reason,
        details={
            "dosage": row.get("dosage"),
            "dosage_unit": row.get("dosage_unit"),
            "frequency": row.get("frequency"),
        },
    )


def _visit_item(row: dict[str, Any], entity_id: str) -> TimelineItem:
    follow_up = _optional_date(row, "follow_up_date")
    label = row.get("reason") or row.get("visit_type") or "Vet visit"
    return TimelineItem(
        record_id=str(_require(row, "id")),
        entity_id=entity_id,
        category=MEDICAL if follow_up else VISIT,
        label=str(label),
        occurred_on=_optional_date(row, "visit_date"),
        due_date=follow_up,
        due_reason="follow_up" if follow_up else None,
        details={"visit_type": row.get("visit_type"), "diagnosis": row.get("diagnosis")},
    )


def _weight_item(row: dict[str, Any], entity_id: str) -> TimelineItem:
    weight = _require(row, "weight")
    if isinstance(weight, bool) or not isinstance(weight, (int, float)):
        raise MalformedRecordError("weight is not a number")
    unit = row.get("unit") or "kg"
    return TimelineItem(
        record_id=str(_require(row, "id")),
        entity_id=entity_id,
        category=WEIGHT,
        label=f"{weight} {unit}",
        occurred_on=_optional_date(row, "recorded_date"),
        details={"weight": weight, "unit": unit},
    )


_NORMALIZERS = {
    VACCINATION: _vaccination_item,
    MEDICATION: _medication_item,
    VISIT: _visit_item,
    WEIGHT: _weight_item,
}


@dataclass
class Timeline:
    """An entity's normalised records across every timeline source."""

    entity_id: str
    items: list[TimelineItem] = field(default_factory=list)
    skipped: int = 0

    def by_category(self, category: str) -> list[TimelineItem]:
        return [item for item in self.items if item.category == category]

    def due_items(self) -> list[TimelineItem]:
        return [item for item in self.items if item.due_date is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "items": [item.to_dict() for item in self.items],
            "skipped": self.skipped,
        }


def build_timeline(entity_id: str, rows_by_category: dict[str, list[dict[str, Any]]]) -> Timeline:
    """Normalise fetched rows into a :class:`Timeline`, newest first.

    Rows that cannot be normalised are skipped, counted and logged.
    """
    timeline = Timeline(entity_id=entity_id)
    for category in TIMELINE_CATEGORIES:
        normalize = _NORMALIZERS[category]
        for row in rows_by_category.get(category, []):
            try:
                timeline.items.append(normalize(row, entity_id))
            except (MalformedRecordError, AttributeError, TypeError) as exc:
                timeline.skipped += 1
                logger.warning(
                    "Skipping malformed %s record %s: %s",
                    category,
                    row.get("id", "?") if isinstance(row, dict) else "?",
                    exc,
                )

    timeline.items.sort(key=lambda i: i.occurred_on or date.min, reverse=True)
    return timeline


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class TemporalAggregator:
    """Fetches an entity's record sources concurrently, all or nothing.

    Usage::

        aggregator = TemporalAggregator(store, timeout_seconds=5.0)
        timeline = await aggregator.aggregate("pet-1")
        rows = await aggregator.collect("pet-1", ["allergy", "vaccination"])
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._store = store
        self._timeout = timeout_seconds

    @property
    def store(self) -> RecordStore:
        return self._store

    async def _fetch(self, entity_id: str, category: str) -> list[dict[str, Any]]:
        return await asyncio.wait_for(
            self._store.list_by_entity(entity_id, category), timeout=self._timeout
        )

    async def fetch_entity(self, entity_id: str) -> dict[str, Any] | None:
        """Read the entity profile under the same timeout as the record sources.

        Returns ``None`` for an unknown entity.

        Raises:
            AggregationError: If the profile source raised or timed out,
                with ``failed_sources == ["profile"]``.
        """
        try:
            return await asyncio.wait_for(
                self._store.get_entity(entity_id), timeout=self._timeout
            )
        except Exception as exc:
            logger.error(
                "Record source %s failed for entity %s: %s",
                PROFILE_SOURCE,
                entity_id,
                type(exc).__name__,
            )
            raise AggregationError(entity_id, [PROFILE_SOURCE]) from exc

    async def collect(
        self, entity_id: str, categories: Iterable[str]
    ) -> dict[str, list[dict[str, Any]]]:
        """Fetch the given categories concurrently.

        Raises:
            AggregationError: If any source raised or timed out.
        """
        wanted = list(dict.fromkeys(categories))
        if not wanted:
            return {}

        results = await asyncio.gather(
            *(self._fetch(entity_id, category) for category in wanted),
            return_exceptions=True,
        )

        rows: dict[str, list[dict[str, Any]]] = {}
        failed: list[str] = []
        for category, result in zip(wanted, results):
            if isinstance(result, BaseException):
                failed.append(category)
                logger.error(
                    "Record source %s failed for entity %s: %s",
                    category,
                    entity_id,
                    type(result).__name__,
                )
            else:
                rows[category] = list(result or [])

        if failed:
            raise AggregationError(entity_id, failed)
        return rows

    async def aggregate(self, entity_id: str) -> Timeline:
        """Fetch every timeline source and normalise it.

        Raises:
            AggregationError: If any source raised or timed out.
        """
        rows = await self.collect(entity_id, TIMELINE_CATEGORIES)
        timeline = build_timeline(entity_id, rows)
        logger.debug(
            "Aggregated %d timeline items for entity %s (%d skipped)",
            len(timeline.items),
            entity_id,
            timeline.skipped,
        )
        return timeline
