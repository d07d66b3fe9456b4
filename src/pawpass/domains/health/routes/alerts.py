"""Owner-facing alert feed.

The caller is an upstream, already-authenticated owner session that passes
a pre-validated ``entity_id``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pawpass.core.server.services import Services
from pawpass.domains.health.routes.deps import get_services
from pawpass.domains.health.routes.models import AlertOut, AlertsResponse, error_responses

router = APIRouter(tags=["alerts"])


@router.get(
    "/alerts", response_model=AlertsResponse, responses=error_responses(404, 503)
)
async def get_alerts(
    entity_id: str = Query(..., min_length=1),
    limit: int | None = Query(None, ge=1, le=100),
    horizon_days: int | None = Query(None, ge=0),
    services: Services = Depends(get_services),
) -> AlertsResponse:
    """Ranked due and overdue items for one animal.

    Aggregation failure is a 503: a partial list could hide an overdue item.
    """
    report = await services.alert_service.compute(
        entity_id, horizon_days=horizon_days, surface="GET /alerts"
    )
    shown = limit or services.alert_limit
    return AlertsResponse(
        entity_id=entity_id,
        alerts=[AlertOut(**alert.to_dict()) for alert in report.top(shown)],
        total=len(report.alerts),
        counts_by_severity=report.counts_by_severity(),
        skipped=report.skipped,
    )
