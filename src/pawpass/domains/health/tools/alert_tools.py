"""MCP tools for the owner's priority alert feed."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from pawpass.core.errors import EngineError, error_payload

if TYPE_CHECKING:
    from pawpass.domains.health.domain_logic.alert_service import AlertService

logger = logging.getLogger(__name__)


def register_alert_tools(
    mcp: FastMCP,
    alert_service: AlertService,
    default_limit: int,
) -> None:
    """Register alert tools on the MCP server."""

    @mcp.tool
    async def priority_alerts(
        ctx: Context,
        entity_id: str,
        limit: int = 0,
        horizon_days: int | None = None,
    ) -> str:
        """Rank an animal's due and overdue vaccinations, medications and follow-ups.

        Args:
            entity_id: The animal whose records to check.
            limit: How many alerts to return (default: the configured display limit).
            horizon_days: Drop items due further out than this many days.
                Overdue items are always included.
        """
        shown = limit if limit > 0 else default_limit
        try:
            report = await alert_service.compute(
                entity_id, horizon_days=horizon_days, surface="priority_alerts"
            )
        except EngineError as exc:
            logger.info("priority_alerts failed for %s: %s", entity_id, type(exc).__name__)
            return json.dumps(error_payload(exc))

        return json.dumps({"status": "ok", "entity_id": entity_id, **report.to_dict(shown)},
                          indent=2)
