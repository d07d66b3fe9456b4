"""MCP tools for viewing the share-link audit trail.

The trail is PHI-free: it records which links were generated, resolved,
denied and revoked, and when, but never a token or any health data.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from pawpass.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
    clock: Callable[[], datetime],
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def share_access_summary(
        ctx: Context,
        entity_id: str = "",
        days: int = 30,
    ) -> str:
        """See how often shared records were viewed and which link events occurred.

        Args:
            entity_id: Limit to one animal (default: all).
            days: Number of days to look back (default: 30).
        """
        since = (clock() - timedelta(days=max(days, 0))).isoformat()
        disclosures = audit_logger.count_disclosures(entity_id=entity_id or None, since=since)
        events = audit_logger.get_events(entity_id=entity_id or None, since=since, limit=20)

        display_events = [
            {
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "share_id": event.get("share_id"),
                "status": event.get("status"),
                "error_type": event.get("error_type"),
            }
            for event in events
        ]

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "disclosures": disclosures,
            "recent_events": display_events,
            "note": (
                "This audit trail contains no health data and no link tokens. "
                "A disclosure is one successful view of a shared record."
            ),
        }, indent=2)
