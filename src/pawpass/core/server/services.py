"""Service container shared by the MCP tools and the HTTP routes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from pawpass.core.audit.logger import AuditLogger
from pawpass.core.config.settings import Settings
from pawpass.core.storage.database import HealthDatabase
from pawpass.core.storage.encryption import EncryptionError, PayloadCipher
from pawpass.core.storage.repository import HealthRecordRepository
from pawpass.core.storage.share_repository import ShareLinkRepository
from pawpass.domains.health.connectors import RecordStore
from pawpass.domains.health.connectors.aggregator import TemporalAggregator
from pawpass.domains.health.connectors.providers import MockRecordStore, StoredRecordProvider
from pawpass.domains.health.domain_logic.alert_prioritizer import AlertPrioritizer
from pawpass.domains.health.domain_logic.alert_service import AlertService
from pawpass.domains.health.domain_logic.rule_tables import RuleTables, default_rule_tables
from pawpass.domains.health.sharing.token_service import DisclosureTokenService

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Services:
    """Everything a serving surface needs, built once per app."""

    settings: Settings
    database: HealthDatabase
    store: RecordStore
    records: HealthRecordRepository | None
    share_links: ShareLinkRepository
    audit_logger: AuditLogger
    aggregator: TemporalAggregator
    prioritizer: AlertPrioritizer
    alert_service: AlertService
    token_service: DisclosureTokenService
    rule_tables: RuleTables
    clock: Callable[[], datetime]

    @property
    def alert_limit(self) -> int:
        return self.settings.alert_display_limit


def build_services(
    settings: Settings,
    *,
    database: HealthDatabase | None = None,
    record_store: RecordStore | None = None,
    rule_tables: RuleTables | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Services:
    """Wire storage, record source, aggregator and the two domain services.

    The share-link and audit tables are always available. Health records
    come from the encrypted store when an encryption key is configured and
    from the built-in demo data otherwise.
    """
    if database is None:
        database = HealthDatabase(settings.db_path)
        database.initialize()
        logger.info(
            "Database initialized: %s (schema v%d)",
            settings.db_path,
            database.get_schema_version(),
        )

    records: HealthRecordRepository | None = None
    if record_store is not None:
        store = record_store
    elif settings.encryption_key:
        try:
            cipher = PayloadCipher(settings.encryption_key)
        except EncryptionError as exc:
            logger.error("Invalid ENCRYPTION_KEY: %s", exc)
            raise
        records = HealthRecordRepository(database, cipher)
        store = StoredRecordProvider(records)
        logger.info("Serving records from the encrypted store (%d key(s))", cipher.key_count)
    else:
        store = MockRecordStore(today=lambda: clock().date())
        logger.info(
            "No ENCRYPTION_KEY configured — serving the built-in demo records. "
            "Set ENCRYPTION_KEY to serve stored records."
        )

    audit_logger = AuditLogger(database, clock=clock)
    share_links = ShareLinkRepository(database)
    aggregator = TemporalAggregator(store, timeout_seconds=settings.source_fetch_timeout_seconds)
    prioritizer = AlertPrioritizer()

    return Services(
        settings=settings,
        database=database,
        store=store,
        records=records,
        share_links=share_links,
        audit_logger=audit_logger,
        aggregator=aggregator,
        prioritizer=prioritizer,
        alert_service=AlertService(
            aggregator, prioritizer, audit_logger=audit_logger, clock=clock
        ),
        token_service=DisclosureTokenService(
            share_links,
            aggregator,
            audit_logger=audit_logger,
            prioritizer=prioritizer,
            public_base_url=settings.public_base_url,
            alert_limit=settings.alert_display_limit,
            clock=clock,
        ),
        rule_tables=rule_tables or default_rule_tables(),
        clock=clock,
    )
