"""MCP tools for managing share links.

The raw token is returned once, by ``create_share_link``. Listings and
revocations only ever carry the link id.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from pawpass.core.errors import EngineError, error_payload

if TYPE_CHECKING:
    from pawpass.core.audit.logger import AuditLogger
    from pawpass.domains.health.sharing.token_service import DisclosureTokenService

logger = logging.getLogger(__name__)


def register_share_tools(
    mcp: FastMCP,
    token_service: DisclosureTokenService,
    clock: Callable[[], datetime],
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register share link tools on the MCP server."""

    @mcp.tool
    async def create_share_link(
        ctx: Context,
        entity_id: str,
        permissions: dict[str, bool],
    ) -> str:
        """Create a 30-day link that shows the chosen parts of an animal's record.

        Args:
            entity_id: The animal to share.
            permissions: Field groups to disclose, e.g.
                {"identification": true, "allergies": true, "emergency": true}.
                Groups: identification, physical, medical, vaccinations,
                emergency, allergies, notes, timeline, documents.
        """
        try:
            share = await token_service.generate(entity_id, permissions)
        except EngineError as exc:
            return json.dumps(error_payload(exc))

        return json.dumps({
            "status": "created",
            "share": share.to_dict(clock()),
            "url": token_service.share_url(share.token or ""),
            "note": "This is the only time the link token is shown. Store the URL now.",
        }, indent=2)

    @mcp.tool
    async def list_share_links(ctx: Context, entity_id: str) -> str:
        """List an animal's active share links, newest first (tokens are never shown).

        Args:
            entity_id: The animal whose links to list.
        """
        start_time = time.monotonic()
        now = clock()
        shares = token_service.list_active(entity_id)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        if audit_logger is not None:
            audit_logger.log_tool_call(
                "list_share_links",
                {"entity_id": entity_id},
                entity_id=entity_id,
                duration_ms=elapsed_ms,
                metadata={"count": len(shares)},
            )
        return json.dumps({
            "status": "ok",
            "entity_id": entity_id,
            "count": len(shares),
            "shares": [s.to_dict(now) for s in shares],
        }, indent=2)

    @mcp.tool
    async def revoke_share_link(ctx: Context, share_id: str, entity_id: str = "") -> str:
        """Permanently disable a share link. Revoking an already revoked link is harmless.

        Args:
            share_id: The link id from create_share_link or list_share_links.
            entity_id: Optional. When given, the link must belong to this animal.
        """
        try:
            share = token_service.revoke(share_id, entity_id=entity_id or None)
        except EngineError as exc:
            return json.dumps(error_payload(exc))
        return json.dumps({"status": "revoked", "share": share.to_dict(clock())}, indent=2)
