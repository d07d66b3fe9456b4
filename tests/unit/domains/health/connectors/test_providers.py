"""Tests for the mock and SQLite-backed record stores."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta

from pawpass.core.storage.models import EntityProfile
from pawpass.domains.health.connectors import RecordStore
from pawpass.domains.health.connectors.aggregator import TemporalAggregator
from pawpass.domains.health.connectors.mock_data import DEMO_ENTITY_ID
from pawpass.domains.health.connectors.providers import MockRecordStore, StoredRecordProvider

FIXED_DAY = date(2026, 3, 10)


def _run(coro):
    """Run an async coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class TestMockRecordStore:
    def test_satisfies_protocol(self):
        assert isinstance(MockRecordStore(), RecordStore)
        assert MockRecordStore().data_source == "mock"

    def test_demo_profile(self):
        profile = _run(MockRecordStore().get_entity(DEMO_ENTITY_ID))
        assert profile["name"] == "Biscuit"
        assert _run(MockRecordStore().get_entity("someone-else")) is None

    def test_dates_follow_injected_day(self):
        store = MockRecordStore(today=lambda: FIXED_DAY)
        rows = _run(store.list_by_entity(DEMO_ENTITY_ID, "vaccination"))
        due = sorted(r["next_due_date"] for r in rows)
        assert (FIXED_DAY + timedelta(days=5)).isoformat() in due
        assert (FIXED_DAY - timedelta(days=5)).isoformat() in due

    def test_other_entities_have_no_records(self):
        assert _run(MockRecordStore().list_by_entity("pet-9", "vaccination")) == []

    def test_demo_timeline_alert_mix(self):
        store = MockRecordStore(today=lambda: FIXED_DAY)
        timeline = _run(TemporalAggregator(store).aggregate(DEMO_ENTITY_ID))
        due = {i.record_id: (i.due_date - FIXED_DAY).days for i in timeline.due_items()}
        assert due == {
            "demo-vacc-bordetella": 5,
            "demo-vacc-lepto": -5,
            "demo-vacc-rabies": 695,
            "demo-med-carprofen": 4,
            "demo-med-heartworm": 12,
            "demo-visit-limp": 20,
        }
        assert timeline.skipped == 0


class TestStoredRecordProvider:
    def test_reads_from_repository(self, records):
        records.save_entity(EntityProfile(id="pet-1", name="Mochi", species="cat"))
        records.add_record("pet-1", "allergy", {"allergen": "Chicken"})
        provider = StoredRecordProvider(records)

        assert isinstance(provider, RecordStore)
        assert provider.data_source == "sqlite"
        rows = _run(provider.list_by_entity("pet-1", "allergy"))
        assert rows[0]["allergen"] == "Chicken"

        profile = _run(provider.get_entity("pet-1"))
        assert profile["name"] == "Mochi"
        assert profile["id"] == "pet-1"
        assert _run(provider.get_entity("pet-2")) is None
