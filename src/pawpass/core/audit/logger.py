"""Audit logger — PHI-free trail of share-link and alert activity.

Every disclosure-relevant event is recorded: links generated, resolved,
denied and revoked, alert computations, and owner tool calls. The trail
never holds health data or bearer tokens:

* ``input_hash`` — SHA-256 of canonical JSON of the call input.
* ``share_id``   — the link's row id, never its token.
* ``status``     — ``success`` or ``failure``; denial reasons stay internal
  to the trail and are never echoed to the public surface.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pawpass.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)

SHARE_GENERATED = "share_generated"
SHARE_RESOLVED = "share_resolved"
SHARE_DENIED = "share_denied"
SHARE_REVOKED = "share_revoked"
ALERTS_COMPUTED = "alerts_computed"
TOOL_INVOCATION = "tool_invocation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _hash_input(data: Any) -> str:
    """SHA-256 of canonical JSON; empty string if ``data`` is not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str
    surface: str = ""                    # tool or route that triggered the event
    input_hash: str = ""
    entity_id: str | None = None
    share_id: str | None = None
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` table.

    Event timestamps come from ``clock``, the clock the services run on.

    Writes are committed immediately. A failed write is logged and dropped:
    auditing never fails the operation being audited.

    Usage::

        audit = AuditLogger(db)
        audit.log_share_event(SHARE_RESOLVED, share_id=link.id, entity_id=link.entity_id)
    """

    def __init__(
        self,
        database: HealthDatabase,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = database
        self._clock = clock

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its id ('' if the write failed)."""
        event_id = str(uuid.uuid4())
        now = self._clock().isoformat()
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), default=str)
            if event.metadata
            else None
        )

        try:
            with self._db.transaction() as conn:
                conn.execute(
                    """INSERT INTO audit_log
                       (id, timestamp, action, surface, input_hash, entity_id,
                        share_id, duration_ms, status, error_type, metadata_json)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        event_id,
                        now,
                        event.action,
                        event.surface or None,
                        event.input_hash or None,
                        event.entity_id,
                        event.share_id,
                        event.duration_ms,
                        event.status,
                        event.error_type,
                        metadata_json,
                    ),
                )
        except Exception:
            logger.exception("Failed to write audit event %s; event lost", event.action)
            return ""

        return event_id

    def log_share_event(
        self,
        action: str,
        *,
        share_id: str | None = None,
        entity_id: str | None = None,
        surface: str = "",
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Record a share-link lifecycle event (generated/resolved/denied/revoked)."""
        return self.log_event(AuditEvent(
            action=action,
            surface=surface,
            share_id=share_id,
            entity_id=entity_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_tool_call(
        self,
        surface: str,
        tool_input: Any = None,
        *,
        action: str = TOOL_INVOCATION,
        entity_id: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Record an owner-side tool or route call; the input is hashed, not stored."""
        return self.log_event(AuditEvent(
            action=action,
            surface=surface,
            input_hash=_hash_input(tool_input) if tool_input else "",
            entity_id=entity_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    @staticmethod
    def _where(**criteria: Any) -> tuple[str, list[Any]]:
        """WHERE clause for the given column filters; ``since`` bounds the timestamp."""
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in criteria.items():
            if not value:
                continue
            clauses.append("timestamp >= ?" if column == "since" else f"{column} = ?")
            params.append(value)
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

    def get_events(
        self,
        *,
        action: str | None = None,
        entity_id: str | None = None,
        share_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events, newest first."""
        where, params = self._where(
            action=action, entity_id=entity_id, share_id=share_id, since=since
        )
        rows = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            [*params, limit],
        ).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, action: str | None = None, since: str | None = None) -> int:
        where, params = self._where(action=action, since=since)
        row = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return row[0]

    def count_disclosures(
        self, *, entity_id: str | None = None, since: str | None = None
    ) -> int:
        """How many times has this entity's record been shown to an anonymous viewer?"""
        where, params = self._where(action=SHARE_RESOLVED, entity_id=entity_id, since=since)
        row = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return row[0]
