"""Health record repository — encrypted storage for entities and their records.

The repository mediates between record payloads (plain dicts, one shape per
category) and the SQLite database, sealing every payload with
:class:`PayloadCipher`. The owner-facing CRUD flows that create records live
outside this engine; the write methods here serve them and the tests.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from pawpass.core.storage.database import HealthDatabase
from pawpass.core.storage.encryption import PayloadCipher
from pawpass.core.storage.models import (
    RECORD_CATEGORIES,
    RECORD_DATE_FIELDS,
    EntityProfile,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class HealthRecordRepository:
    """CRUD repository for entity profiles and encrypted health records.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        repo = HealthRecordRepository(db, PayloadCipher(key))

        repo.save_entity(EntityProfile(id="pet-1", name="Biscuit", species="dog"))
        repo.add_record("pet-1", "vaccination", {"vaccine_name": "Rabies", ...})
        rows = repo.list_records("pet-1", "vaccination")  # newest first
    """

    def __init__(self, database: HealthDatabase, cipher: PayloadCipher) -> None:
        self._db = database
        self._cipher = cipher

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def save_entity(self, profile: EntityProfile) -> str:
        """Insert or replace an entity profile. Returns its id."""
        eid = profile.id or self._new_id()
        created = profile.created_at or self._now_iso()
        with self._db.transaction() as conn:
            conn.execute(
                """INSERT INTO entities (id, owner_id, profile_enc, created_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       owner_id = excluded.owner_id,
                       profile_enc = excluded.profile_enc""",
                (eid, profile.owner_id, self._cipher.seal(profile.profile_fields()), created),
            )
        logger.info("Saved entity %s", eid)
        return eid

    def get_entity(self, entity_id: str) -> EntityProfile | None:
        row = self._db.connection.execute(
            "SELECT id, owner_id, profile_enc, created_at FROM entities WHERE id = ?",
            (entity_id,),
        ).fetchone()
        if row is None:
            return None
        fields = self._cipher.open(row["profile_enc"]) or {}
        return EntityProfile(
            id=row["id"],
            owner_id=row["owner_id"],
            created_at=row["created_at"],
            **fields,
        )

    def entity_exists(self, entity_id: str) -> bool:
        row = self._db.connection.execute(
            "SELECT 1 FROM entities WHERE id = ?", (entity_id,)
        ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def add_record(self, entity_id: str, category: str, payload: dict[str, Any]) -> str:
        """Persist one record for an entity. Returns the record id.

        Raises:
            RepositoryError: On an unknown category or entity.
        """
        if category not in RECORD_CATEGORIES:
            raise RepositoryError(
                f"Invalid record category: {category!r}. Valid: {RECORD_CATEGORIES}"
            )
        if not self.entity_exists(entity_id):
            raise RepositoryError(f"Unknown entity: {entity_id!r}")

        rid = str(payload.get("id") or self._new_id())
        record_date = payload.get(RECORD_DATE_FIELDS[category])
        body = {**payload, "id": rid, "entity_id": entity_id}

        with self._db.transaction() as conn:
            conn.execute(
                """INSERT INTO health_records
                   (id, entity_id, category, record_date, payload_enc, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    rid,
                    entity_id,
                    category,
                    str(record_date) if record_date is not None else None,
                    self._cipher.seal(body),
                    self._now_iso(),
                ),
            )
        logger.debug("Saved %s record %s for entity %s", category, rid, entity_id)
        return rid

    def list_records(
        self,
        entity_id: str,
        category: str,
        *,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return decrypted record payloads, newest ``record_date`` first.

        Records without a date sort last.
        """
        if category not in RECORD_CATEGORIES:
            raise RepositoryError(
                f"Invalid record category: {category!r}. Valid: {RECORD_CATEGORIES}"
            )
        query = (
            "SELECT payload_enc FROM health_records WHERE entity_id = ? AND category = ? "
            "ORDER BY record_date IS NULL, record_date DESC, created_at DESC"
        )
        params: list[Any] = [entity_id, category]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [self._cipher.open(row["payload_enc"]) for row in rows]

    def count_records(self, entity_id: str | None = None) -> int:
        if entity_id is None:
            row = self._db.connection.execute("SELECT COUNT(*) FROM health_records").fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM health_records WHERE entity_id = ?", (entity_id,)
            ).fetchone()
        return row[0]

    def delete_record(self, record_id: str) -> bool:
        """Delete one record. Returns False if it did not exist."""
        with self._db.transaction() as conn:
            cursor = conn.execute("DELETE FROM health_records WHERE id = ?", (record_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted record %s", record_id)
        return deleted

    # ------------------------------------------------------------------
    # Key rotation
    # ------------------------------------------------------------------

    def reseal_all(self) -> int:
        """Re-encrypt every stored payload under the primary key.

        Returns:
            Number of rows re-sealed (entities plus records).
        """
        conn = self._db.connection
        entity_rows = conn.execute("SELECT id, profile_enc FROM entities").fetchall()
        record_rows = conn.execute("SELECT id, payload_enc FROM health_records").fetchall()

        with self._db.transaction() as tx:
            for row in entity_rows:
                tx.execute(
                    "UPDATE entities SET profile_enc = ? WHERE id = ?",
                    (self._cipher.rotate(row["profile_enc"]), row["id"]),
                )
            for row in record_rows:
                tx.execute(
                    "UPDATE health_records SET payload_enc = ? WHERE id = ?",
                    (self._cipher.rotate(row["payload_enc"]), row["id"]),
                )
        total = len(entity_rows) + len(record_rows)
        logger.info("Re-sealed %d stored payloads", total)
        return total
