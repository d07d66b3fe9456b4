"""Disclosure token service — scoped, expiring share links and their resolution.

The owner generates a link with a set of field-group permissions; anyone
holding the token can resolve it into a :class:`DisclosedView` until the
link expires or is revoked.

Security properties:

* Tokens come from ``secrets.token_urlsafe`` and only their SHA-256 digest
  is stored; the raw value is returned exactly once, from :meth:`generate`.
* :meth:`resolve` never raises and never says why it failed. Unknown,
  revoked, expired and garbage tokens all take the same path: one digest
  lookup, one ``share_denied`` audit event, ``None``.
* Only the record sources of the permitted field groups are read.
"""

from __future__ import annotations

import logging
import secrets
import time
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from pawpass.core.audit.logger import (
    SHARE_DENIED,
    SHARE_GENERATED,
    SHARE_RESOLVED,
    SHARE_REVOKED,
    AuditLogger,
)
from pawpass.core.errors import AggregationError, ConflictError, NotFoundError, ValidationError
from pawpass.core.privacy.policy import SharePermissions
from pawpass.core.storage.models import ShareToken
from pawpass.core.storage.share_repository import ShareLinkRepository
from pawpass.domains.health.connectors.aggregator import TemporalAggregator
from pawpass.domains.health.domain_logic.alert_models import DEFAULT_ALERT_LIMIT
from pawpass.domains.health.domain_logic.alert_prioritizer import AlertPrioritizer
from pawpass.domains.health.sharing.disclosure import (
    DisclosedView,
    DisclosureContext,
    build_view,
    sources_for,
)

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
SHARE_LINK_TTL = timedelta(days=30)
MAX_GENERATE_ATTEMPTS = 3

# Anything longer cannot have come from token_urlsafe(TOKEN_BYTES).
MAX_TOKEN_LENGTH = 256


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


class DisclosureTokenService:
    """Generates, resolves, lists and revokes share links.

    Usage::

        service = DisclosureTokenService(links, aggregator, audit_logger=audit)
        link = await service.generate("pet-1", {"identification": True, "allergies": True})
        service.share_url(link.token)            # hand this to the viewer
        view = await service.resolve(link.token)  # DisclosedView or None
        service.revoke(link.id, entity_id="pet-1")
    """

    def __init__(
        self,
        links: ShareLinkRepository,
        aggregator: TemporalAggregator,
        *,
        audit_logger: AuditLogger | None = None,
        prioritizer: AlertPrioritizer | None = None,
        public_base_url: str = "http://127.0.0.1:8011",
        alert_limit: int = DEFAULT_ALERT_LIMIT,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[], str] = _new_token,
    ) -> None:
        self._links = links
        self._aggregator = aggregator
        self._audit = audit_logger
        self._prioritizer = prioritizer or AlertPrioritizer()
        self._base_url = public_base_url.rstrip("/")
        self._alert_limit = alert_limit
        self._clock = clock
        self._token_factory = token_factory

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    async def generate(
        self,
        entity_id: str,
        permissions: SharePermissions | Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> ShareToken:
        """Mint a new link. The returned object is the only one carrying the token.

        Raises:
            ValidationError: If no field group is enabled or the input is malformed.
            NotFoundError: If the entity does not exist.
            AggregationError: If the profile source failed or timed out.
            ConflictError: If every attempt collided with an existing token.
        """
        if not isinstance(entity_id, str) or not entity_id.strip():
            raise ValidationError("entity_id", "is required")
        if not isinstance(permissions, SharePermissions):
            permissions = SharePermissions.from_flags(permissions)
        if permissions.is_empty():
            raise ValidationError("permissions", "at least one field group must be enabled")

        if await self._aggregator.fetch_entity(entity_id) is None:
            raise NotFoundError(f"Unknown entity: {entity_id}")

        created_at = now or self._clock()
        for attempt in range(1, MAX_GENERATE_ATTEMPTS + 1):
            share = ShareToken(
                id=str(uuid.uuid4()),
                entity_id=entity_id,
                permissions=permissions,
                created_at=created_at,
                expires_at=created_at + SHARE_LINK_TTL,
                token=self._token_factory(),
            )
            try:
                self._links.insert(share)
            except ConflictError:
                logger.warning(
                    "Share link collision for entity %s (attempt %d/%d)",
                    entity_id,
                    attempt,
                    MAX_GENERATE_ATTEMPTS,
                )
                continue

            logger.info("Generated share link %s for entity %s", share.id, entity_id)
            self._record(
                SHARE_GENERATED,
                share_id=share.id,
                entity_id=entity_id,
                metadata={"groups": [g.value for g in permissions.groups]},
            )
            return share

        raise ConflictError(
            f"Could not mint a unique share link after {MAX_GENERATE_ATTEMPTS} attempts"
        )

    def list_active(self, entity_id: str) -> list[ShareToken]:
        """Active links for an entity, newest first. Tokens are never included."""
        return self._links.find_active_by_entity(entity_id)

    def revoke(
        self,
        share_id: str,
        *,
        entity_id: str | None = None,
        now: datetime | None = None,
    ) -> ShareToken:
        """Permanently deactivate a link. Revoking twice is a no-op.

        Raises:
            NotFoundError: If the link does not exist or, when ``entity_id``
                is given, belongs to another entity.
        """
        share = self._links.find_by_id(share_id)
        if share is None or (entity_id is not None and share.entity_id != entity_id):
            raise NotFoundError(f"Unknown share link: {share_id}")

        if share.active:
            self._links.update(share_id, active=False, revoked_at=now or self._clock())
            logger.info("Revoked share link %s", share_id)
            self._record(SHARE_REVOKED, share_id=share_id, entity_id=share.entity_id)
            share = self._links.find_by_id(share_id) or share
        return share

    def share_url(self, token: str) -> str:
        return f"{self._base_url}/p/{token}"

    # ------------------------------------------------------------------
    # Public resolution
    # ------------------------------------------------------------------

    async def resolve(self, token: Any, *, now: datetime | None = None) -> DisclosedView | None:
        """Resolve a presented token into its disclosed view, or ``None``.

        Never raises. A failed access-count increment is logged and the
        disclosure still proceeds.
        """
        started = time.monotonic()
        try:
            return await self._resolve(token, now or self._clock(), started)
        except Exception:
            logger.exception("Share link resolution failed")
            self._record(SHARE_DENIED, status="failure", error_type="internal_error")
            return None

    async def _resolve(
        self, token: Any, now: datetime, started: float
    ) -> DisclosedView | None:
        presented = (
            token if isinstance(token, str) and 0 < len(token) <= MAX_TOKEN_LENGTH else ""
        )
        share = self._links.find_by_token(presented)

        if share is None:
            return self._deny(None, None, "unknown")
        if not share.active:
            return self._deny(share.id, share.entity_id, "revoked")
        if share.is_expired(now):
            return self._deny(share.id, share.entity_id, "expired")

        try:
            profile = await self._aggregator.fetch_entity(share.entity_id)
            if profile is None:
                return self._deny(share.id, share.entity_id, "entity_missing")
            rows = await self._aggregator.collect(
                share.entity_id, sources_for(share.permissions)
            )
        except AggregationError as exc:
            return self._deny(
                share.id, share.entity_id, "aggregation_failed",
                failed_sources=exc.failed_sources,
            )

        ctx = DisclosureContext(
            profile=profile,
            rows=rows,
            now=now,
            prioritizer=self._prioritizer,
            alert_limit=self._alert_limit,
        )
        view = build_view(share.permissions, ctx, share.expires_at)

        try:
            self._links.increment_access(share.id, now)
        except Exception:
            logger.exception("Failed to count access on share link %s", share.id)

        self._record(
            SHARE_RESOLVED,
            share_id=share.id,
            entity_id=share.entity_id,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
            metadata={"groups": view.groups},
        )
        return view

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deny(
        self,
        share_id: str | None,
        entity_id: str | None,
        reason: str,
        **extra: Any,
    ) -> None:
        logger.info("Share link denied (%s)", reason)
        self._record(
            SHARE_DENIED,
            share_id=share_id,
            entity_id=entity_id,
            status="failure",
            error_type=reason,
            metadata=extra or None,
        )
        return None

    def _record(self, action: str, **kwargs: Any) -> None:
        if self._audit is not None:
            self._audit.log_share_event(action, surface="share_link", **kwargs)
