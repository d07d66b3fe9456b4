"""Share link persistence — the token store behind the disclosure service.

Links are looked up by a SHA-256 digest of the bearer token, so the raw
token never reaches the database and a listing can never re-leak it.
Rows are never deleted: revoked and expired links stay for the owner's
history view.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
from datetime import datetime
from typing import Any

from pawpass.core.errors import ConflictError
from pawpass.core.privacy.policy import SharePermissions
from pawpass.core.storage.database import HealthDatabase
from pawpass.core.storage.models import ShareToken
from pawpass.core.storage.repository import RepositoryError

logger = logging.getLogger(__name__)


def token_digest(token: str) -> str:
    """SHA-256 hex digest of a bearer token (the only form that is stored)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class ShareLinkRepository:
    """Token persistence: insert, find, list active, update, count access."""

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def insert(self, share: ShareToken) -> None:
        """Persist a freshly minted link in one transaction.

        Raises:
            ConflictError: If the id or token digest already exists.
            ValueError: If the link carries no raw token.
        """
        if not share.token:
            raise ValueError("A new share link must carry its raw token")
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    """INSERT INTO share_links
                       (id, entity_id, token_hash, permissions_json, active,
                        created_at, expires_at, accessed_count)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        share.id,
                        share.entity_id,
                        token_digest(share.token),
                        json.dumps(share.permissions.to_flags(), separators=(",", ":")),
                        1 if share.active else 0,
                        share.created_at.isoformat(),
                        share.expires_at.isoformat(),
                        share.accessed_count,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(f"Share link collision: {exc}") from exc

    def update(
        self,
        share_id: str,
        *,
        active: bool | None = None,
        accessed_count: int | None = None,
        revoked_at: datetime | None = None,
    ) -> bool:
        """Apply a partial update. Returns False if the link does not exist.

        Revocation is one-way and the access counter never decreases.

        Raises:
            RepositoryError: On an attempt to reactivate a link.
        """
        if active is True:
            raise RepositoryError("Share links cannot be reactivated once revoked")

        sets: list[str] = []
        params: list[Any] = []
        if active is False:
            sets.append("active = 0")
            sets.append("revoked_at = COALESCE(revoked_at, ?)")
            params.append(revoked_at.isoformat() if revoked_at else None)
        if accessed_count is not None:
            sets.append("accessed_count = MAX(accessed_count, ?)")
            params.append(accessed_count)

        if not sets:
            return self.find_by_id(share_id) is not None

        params.append(share_id)
        with self._db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE share_links SET {', '.join(sets)} WHERE id = ?", params
            )
        return cursor.rowcount > 0

    def increment_access(self, share_id: str, accessed_at: datetime) -> None:
        """Atomically bump ``accessed_count`` and stamp ``last_accessed_at``."""
        with self._db.transaction() as conn:
            conn.execute(
                """UPDATE share_links
                   SET accessed_count = accessed_count + 1, last_accessed_at = ?
                   WHERE id = ?""",
                (accessed_at.isoformat(), share_id),
            )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def find_by_token(self, token: str) -> ShareToken | None:
        row = self._db.connection.execute(
            "SELECT * FROM share_links WHERE token_hash = ?", (token_digest(token),)
        ).fetchone()
        return self._row_to_share(row) if row is not None else None

    def find_by_id(self, share_id: str) -> ShareToken | None:
        row = self._db.connection.execute(
            "SELECT * FROM share_links WHERE id = ?", (share_id,)
        ).fetchone()
        return self._row_to_share(row) if row is not None else None

    def find_active_by_entity(self, entity_id: str) -> list[ShareToken]:
        """Active links for an entity, newest first (expired ones included)."""
        rows = self._db.connection.execute(
            """SELECT * FROM share_links WHERE entity_id = ? AND active = 1
               ORDER BY created_at DESC, rowid DESC""",
            (entity_id,),
        ).fetchall()
        return [self._row_to_share(row) for row in rows]

    def find_by_entity(self, entity_id: str) -> list[ShareToken]:
        """Every link ever issued for an entity, newest first."""
        rows = self._db.connection.execute(
            "SELECT * FROM share_links WHERE entity_id = ? ORDER BY created_at DESC, rowid DESC",
            (entity_id,),
        ).fetchall()
        return [self._row_to_share(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_share(row: Any) -> ShareToken:
        return ShareToken(
            id=row["id"],
            entity_id=row["entity_id"],
            permissions=SharePermissions.from_flags(json.loads(row["permissions_json"])),
            active=bool(row["active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            accessed_count=row["accessed_count"],
            last_accessed_at=(
                datetime.fromisoformat(row["last_accessed_at"])
                if row["last_accessed_at"]
                else None
            ),
            revoked_at=(
                datetime.fromisoformat(row["revoked_at"]) if row["revoked_at"] else None
            ),
        )
