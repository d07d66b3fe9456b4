"""Integration tests for the PawPass Health MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from pawpass.core.audit.logger import TOOL_INVOCATION, AuditLogger
from pawpass.core.config.settings import Settings
from pawpass.core.server.app import create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    """Decode a tool's JSON text result."""
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


ALL_EXPECTED_TOOLS = [
    "health_check",
    "priority_alerts",
    "create_share_link",
    "list_share_links",
    "revoke_share_link",
    "medication_safety_check",
    "weight_trend_check",
    "body_condition",
    "share_access_summary",
]


@pytest.fixture
def server(db, store, clock):
    return create_app(
        settings_override=Settings(),
        database_override=db,
        record_store_override=store,
        clock=clock,
    )


@pytest.fixture
def client(server):
    return Client(server)


def _call(client, name: str, arguments: dict) -> dict:
    async def _go():
        async with client:
            return _payload(await client.call_tool(name, arguments))
    return _run(_go())


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(client):
    result = _call(client, "health_check", {})
    assert result["status"] == "ok"
    assert result["record_source"] == "fake"
    assert result["encrypted_records"] is False
    assert result["disclosures_recorded"] == 0


def test_rule_tables_resource(client):
    async def _check():
        async with client:
            contents = await client.read_resource("rules://health/tables")
            return json.loads(contents[0].text)
    tables = _run(_check())
    assert "nsaid" in tables["interactions"]


class TestPriorityAlerts:
    def test_ranked_and_limited(self, client):
        result = _call(client, "priority_alerts", {"entity_id": "pet-1", "limit": 2})
        assert result["status"] == "ok"
        assert result["total"] == 4
        assert [a["id"] for a in result["alerts"]] == ["vac-rabies", "vac-fvrcp"]
        assert result["counts_by_severity"] == {"high": 2, "medium": 1, "low": 1}

    def test_unknown_entity(self, client):
        result = _call(client, "priority_alerts", {"entity_id": "pet-404"})
        assert result == {"status": "error", "error": "NotFoundError",
                          "reason": "Unknown entity: pet-404"}

    def test_source_failure_is_typed(self, client, store):
        store.failing.add("medication")
        result = _call(client, "priority_alerts", {"entity_id": "pet-1"})
        assert result["error"] == "AggregationError"
        assert "medication" not in json.dumps(result)

    def test_profile_failure_is_typed(self, client, store):
        store.failing.add("profile")
        result = _call(client, "priority_alerts", {"entity_id": "pet-1"})
        assert result["status"] == "error"
        assert result["error"] == "AggregationError"


class TestShareTools:
    def test_create_list_revoke(self, client):
        async def _flow():
            async with client:
                created = _payload(await client.call_tool("create_share_link", {
                    "entity_id": "pet-1",
                    "permissions": {"identification": True, "allergies": True},
                }))
                listed = _payload(await client.call_tool(
                    "list_share_links", {"entity_id": "pet-1"}))
                revoked = _payload(await client.call_tool(
                    "revoke_share_link",
                    {"share_id": created["share"]["id"], "entity_id": "pet-1"}))
                after = _payload(await client.call_tool(
                    "list_share_links", {"entity_id": "pet-1"}))
                return created, listed, revoked, after

        created, listed, revoked, after = _run(_flow())
        token = created["share"]["token"]
        assert created["status"] == "created"
        assert created["url"] == f"https://share.example.test/p/{token}"
        assert listed["count"] == 1
        assert token not in json.dumps(listed)
        assert revoked["share"]["status"] == "revoked"
        assert after["count"] == 0

    def test_invalid_permissions(self, client):
        result = _call(client, "create_share_link", {
            "entity_id": "pet-1", "permissions": {"passwords": True},
        })
        assert result["error"] == "ValidationError"
        assert result["field"] == "permissions.passwords"

    def test_revoke_unknown(self, client):
        result = _call(client, "revoke_share_link", {"share_id": "nope"})
        assert result["error"] == "NotFoundError"

    def test_listing_is_audited(self, client, db):
        _call(client, "list_share_links", {"entity_id": "pet-1"})
        event = AuditLogger(db).get_events(action=TOOL_INVOCATION)[0]
        assert (event["surface"], event["entity_id"]) == ("list_share_links", "pet-1")
        assert json.loads(event["metadata_json"]) == {"count": 0}


class TestRuleTools:
    def test_medication_safety_check(self, client):
        result = _call(client, "medication_safety_check", {
            "medication": "Amoxicillin",
            "active_medications": ["Omeprazole"],
            "allergens": ["Penicillin"],
            "dosage": "250",
        })
        assert result["allergy_matches"] == ["Penicillin"]
        assert result["interaction_warnings"] == []
        assert result["dosage"] == {"valid": True, "error": None}
        assert result["flagged"] is True

    def test_weight_trend_check(self, client):
        result = _call(client, "weight_trend_check", {
            "current": 22.0, "previous": 10.0, "current_unit": "lb",
        })
        assert result["direction"] == "stable"

    def test_weight_trend_rejects_zero(self, client):
        result = _call(client, "weight_trend_check", {"current": 4.0, "previous": 0})
        assert result["field"] == "previous"

    def test_body_condition(self, client):
        result = _call(client, "body_condition", {"score": 8})
        assert (result["label"], result["category"]) == ("Obese", "obese")

    def test_calls_are_audited_without_input(self, client, db):
        _call(client, "medication_safety_check", {
            "medication": "Amoxicillin", "allergens": ["Penicillin"],
        })
        events = AuditLogger(db).get_events(action=TOOL_INVOCATION)
        assert [e["surface"] for e in events] == ["medication_safety_check"]
        assert len(events[0]["input_hash"]) == 64
        assert json.loads(events[0]["metadata_json"]) == {"flagged": True}
        trail = json.dumps(events)
        assert "Amoxicillin" not in trail
        assert "Penicillin" not in trail

    def test_rejected_input_is_audited_as_failure(self, client, db):
        _call(client, "weight_trend_check", {"current": 4.0, "previous": 0})
        event = AuditLogger(db).get_events(action=TOOL_INVOCATION)[0]
        assert event["surface"] == "weight_trend_check"
        assert (event["status"], event["error_type"]) == ("failure", "ValidationError")


def test_share_access_summary_counts_disclosures(server, client):
    async def _flow():
        async with client:
            created = _payload(await client.call_tool("create_share_link", {
                "entity_id": "pet-1", "permissions": {"notes": True},
            }))
            return created["share"]["token"]

    token = _run(_flow())
    assert token
    summary = _call(Client(server), "share_access_summary", {"entity_id": "pet-1"})
    actions = [e["action"] for e in summary["recent_events"]]
    assert actions == ["share_generated"]
    assert summary["disclosures"] == 0
    assert token not in json.dumps(summary)


def test_share_access_summary_window_follows_clock(server, client, clock):
    _call(client, "create_share_link", {
        "entity_id": "pet-1", "permissions": {"notes": True},
    })
    clock.advance(days=31)
    recent = _call(Client(server), "share_access_summary", {"entity_id": "pet-1", "days": 30})
    assert recent["recent_events"] == []
    wider = _call(Client(server), "share_access_summary", {"entity_id": "pet-1", "days": 60})
    assert [e["action"] for e in wider["recent_events"]] == ["share_generated"]
