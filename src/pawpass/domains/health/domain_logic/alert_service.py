"""Alert service — the owner-side read path from record store to ranked alerts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import date, datetime, timezone

from pawpass.core.audit.logger import ALERTS_COMPUTED, AuditLogger
from pawpass.core.errors import AggregationError, NotFoundError
from pawpass.domains.health.connectors.aggregator import TemporalAggregator
from pawpass.domains.health.domain_logic.alert_prioritizer import (
    AlertPrioritizer,
    AlertReport,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertService:
    """Aggregates an entity's timeline and ranks it.

    Raises :class:`AggregationError` rather than returning a partial report,
    and :class:`NotFoundError` for an unknown entity.
    """

    def __init__(
        self,
        aggregator: TemporalAggregator,
        prioritizer: AlertPrioritizer | None = None,
        *,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._aggregator = aggregator
        self._prioritizer = prioritizer or AlertPrioritizer()
        self._audit = audit_logger
        self._clock = clock

    async def compute(
        self,
        entity_id: str,
        *,
        now: date | datetime | None = None,
        horizon_days: int | None = None,
        surface: str = "alerts",
    ) -> AlertReport:
        started = time.monotonic()
        try:
            if await self._aggregator.fetch_entity(entity_id) is None:
                raise NotFoundError(f"Unknown entity: {entity_id}")
            timeline = await self._aggregator.aggregate(entity_id)
        except AggregationError as exc:
            self._log(surface, entity_id, started, status="failure",
                      error_type="AggregationError",
                      metadata={"failed_sources": exc.failed_sources})
            raise

        report = self._prioritizer.prioritize(
            timeline.items, now or self._clock(), horizon_days=horizon_days
        )
        report.skipped += timeline.skipped
        self._log(surface, entity_id, started, metadata={
            "alerts": len(report.alerts),
            "skipped": report.skipped,
        })
        return report

    def _log(self, surface: str, entity_id: str, started: float, **kwargs) -> None:
        if self._audit is None:
            return
        self._audit.log_tool_call(
            surface,
            {"entity_id": entity_id},
            action=ALERTS_COMPUTED,
            entity_id=entity_id,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
            **kwargs,
        )
