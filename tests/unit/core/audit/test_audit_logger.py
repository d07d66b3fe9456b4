"""Tests for the AuditLogger and related utilities."""

from __future__ import annotations

import json
from datetime import timedelta

from pawpass.core.audit.logger import (
    ALERTS_COMPUTED,
    SHARE_DENIED,
    SHARE_GENERATED,
    SHARE_RESOLVED,
    AuditEvent,
    AuditLogger,
    _hash_input,
)
from pawpass.core.storage.database import HealthDatabase


class TestHashInput:
    def test_sha256_hex(self):
        assert len(_hash_input({"key": "value"})) == 64

    def test_order_independent(self):
        assert _hash_input({"z": 1, "a": 2}) == _hash_input({"a": 2, "z": 1})

    def test_different_inputs_differ(self):
        assert _hash_input({"a": 1}) != _hash_input({"a": 2})

    def test_non_serializable_returns_empty(self):
        assert _hash_input(object()) == ""


class TestLogEvent:
    def test_returns_uuid(self, audit_logger):
        eid = audit_logger.log_event(AuditEvent(action=SHARE_GENERATED))
        assert len(eid) == 36

    def test_share_event_retrievable(self, audit_logger):
        audit_logger.log_share_event(
            SHARE_RESOLVED, share_id="s1", entity_id="pet-1", surface="share_link",
            duration_ms=3.5, metadata={"groups": ["allergies"]},
        )
        events = audit_logger.get_events()
        assert len(events) == 1
        event = events[0]
        assert event["action"] == SHARE_RESOLVED
        assert event["share_id"] == "s1"
        assert event["entity_id"] == "pet-1"
        assert event["duration_ms"] == 3.5
        assert json.loads(event["metadata_json"]) == {"groups": ["allergies"]}

    def test_tool_call_stores_only_input_hash(self, audit_logger):
        audit_logger.log_tool_call(
            "priority_alerts", {"entity_id": "pet-1", "secret": "Rabies"},
            action=ALERTS_COMPUTED,
        )
        event = audit_logger.get_events()[0]
        assert len(event["input_hash"]) == 64
        assert "Rabies" not in json.dumps(event)

    def test_failed_write_is_swallowed(self):
        db = HealthDatabase(":memory:")
        db.initialize()
        logger = AuditLogger(db)
        db.connection.execute("DROP TABLE audit_log")
        assert logger.log_share_event(SHARE_DENIED) == ""
        db.close()


class TestQueries:
    def test_filters(self, audit_logger):
        audit_logger.log_share_event(SHARE_GENERATED, share_id="s1", entity_id="pet-1")
        audit_logger.log_share_event(SHARE_RESOLVED, share_id="s1", entity_id="pet-1")
        audit_logger.log_share_event(SHARE_RESOLVED, share_id="s2", entity_id="pet-2")
        audit_logger.log_share_event(SHARE_DENIED, status="failure", error_type="expired")

        assert len(audit_logger.get_events(action=SHARE_RESOLVED)) == 2
        assert len(audit_logger.get_events(entity_id="pet-1")) == 2
        assert len(audit_logger.get_events(share_id="s2")) == 1
        assert audit_logger.count_events() == 4
        assert audit_logger.count_events(action=SHARE_DENIED) == 1

    def test_count_disclosures(self, audit_logger):
        audit_logger.log_share_event(SHARE_RESOLVED, entity_id="pet-1")
        audit_logger.log_share_event(SHARE_RESOLVED, entity_id="pet-1")
        audit_logger.log_share_event(SHARE_RESOLVED, entity_id="pet-2")
        audit_logger.log_share_event(SHARE_DENIED, entity_id="pet-1")

        assert audit_logger.count_disclosures() == 3
        assert audit_logger.count_disclosures(entity_id="pet-1") == 2
        assert audit_logger.count_disclosures(since="2999-01-01") == 0

    def test_newest_first_and_limit(self, audit_logger):
        for i in range(5):
            audit_logger.log_share_event(SHARE_GENERATED, share_id=f"s{i}")
        events = audit_logger.get_events(limit=3)
        assert [e["share_id"] for e in events] == ["s4", "s3", "s2"]


class TestClock:
    def test_stamps_with_injected_clock(self, audit_logger, now):
        audit_logger.log_share_event(SHARE_GENERATED, share_id="s1")
        assert audit_logger.get_events()[0]["timestamp"] == now.isoformat()

    def test_window_follows_injected_clock(self, audit_logger, clock):
        audit_logger.log_share_event(SHARE_RESOLVED, entity_id="pet-1")
        clock.advance(days=10)
        audit_logger.log_share_event(SHARE_RESOLVED, entity_id="pet-1")
        since = (clock() - timedelta(days=7)).isoformat()
        assert audit_logger.count_disclosures(entity_id="pet-1", since=since) == 1
        assert audit_logger.count_disclosures(entity_id="pet-1") == 2
