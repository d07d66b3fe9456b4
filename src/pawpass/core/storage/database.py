"""SQLite database management for the PawPass record and share-link store.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per animal; profile fields are an encrypted JSON blob
CREATE TABLE IF NOT EXISTS entities (
    id           TEXT PRIMARY KEY,
    owner_id     TEXT,
    profile_enc  TEXT NOT NULL,
    created_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Every health record (vaccination, medication, visit, weight, allergy,
-- condition, document) shares one table; the payload is encrypted and the
-- columns needed for ordered per-entity queries stay in the clear.
CREATE TABLE IF NOT EXISTS health_records (
    id           TEXT PRIMARY KEY,
    entity_id    TEXT NOT NULL REFERENCES entities(id),
    category     TEXT NOT NULL,
    record_date  TEXT,
    payload_enc  TEXT NOT NULL,
    created_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_records_entity_cat ON health_records(entity_id, category, record_date);
"""

# ---------------------------------------------------------------------------
# V2: share links + audit log
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
-- Disclosure tokens. Only a SHA-256 digest of the bearer token is stored.
CREATE TABLE IF NOT EXISTS share_links (
    id               TEXT PRIMARY KEY,
    entity_id        TEXT NOT NULL,
    token_hash       TEXT NOT NULL UNIQUE,
    permissions_json TEXT NOT NULL,
    active           INTEGER NOT NULL DEFAULT 1,
    created_at       TEXT NOT NULL,
    expires_at       TEXT NOT NULL,
    accessed_count   INTEGER NOT NULL DEFAULT 0,
    last_accessed_at TEXT,
    revoked_at       TEXT
);

CREATE INDEX IF NOT EXISTS idx_share_links_entity ON share_links(entity_id, active, created_at);

CREATE TABLE IF NOT EXISTS audit_log (
    id             TEXT PRIMARY KEY,
    timestamp      TEXT NOT NULL DEFAULT (datetime('now')),
    action         TEXT NOT NULL,
    surface        TEXT,
    input_hash     TEXT,
    entity_id      TEXT,
    share_id       TEXT,
    duration_ms    REAL,
    status         TEXT NOT NULL DEFAULT 'success',
    error_type     TEXT,
    metadata_json  TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_share     ON audit_log(share_id);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class HealthDatabase:
    """SQLite database manager for entities, health records and share links.

    The connection is shared between the event loop and the worker threads
    the HTTP layer may run handlers in, so it is opened with
    ``check_same_thread=False`` and every write goes through
    :meth:`transaction`, which serialises writers on a lock.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        with db.transaction() as conn:
            conn.execute(...)
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._write_lock = threading.RLock()

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        if self._db_path == ":memory:":
            target = ":memory:"
        else:
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_file)

        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._migrate()
        logger.info("PawPass database initialized: %s", self._db_path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of writes atomically: commit on success, roll back on error."""
        conn = self.connection
        with self._write_lock:
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()

    def _migrate(self) -> None:
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()
        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: share_links, audit_log")

        if current_version < SCHEMA_VERSION:
            with self.transaction() as tx:
                tx.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version (0 for a fresh database)."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("PawPass database closed")

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
