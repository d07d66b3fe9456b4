"""Shared test fixtures for PawPass Health tests."""

from __future__ import annotations

import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://share.example.test")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from pawpass.core.audit.logger import AuditLogger  # noqa: E402
from pawpass.core.storage.database import HealthDatabase  # noqa: E402
from pawpass.core.storage.encryption import PayloadCipher  # noqa: E402
from pawpass.core.storage.repository import HealthRecordRepository  # noqa: E402
from pawpass.core.storage.share_repository import ShareLinkRepository  # noqa: E402

# Fixed "now" for every clock-dependent test.
NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
TODAY = NOW.date()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FixedClock:
    """Injectable clock; tests move it forward with :meth:`advance`."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    database = HealthDatabase(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def cipher() -> PayloadCipher:
    return PayloadCipher(PayloadCipher.generate_key())


@pytest.fixture
def records(db, cipher) -> HealthRecordRepository:
    return HealthRecordRepository(db, cipher)


@pytest.fixture
def share_links(db) -> ShareLinkRepository:
    return ShareLinkRepository(db)


@pytest.fixture
def audit_logger(db, clock) -> AuditLogger:
    return AuditLogger(db, clock=clock)


# ---------------------------------------------------------------------------
# Fake record store
# ---------------------------------------------------------------------------

def _iso(offset_days: int) -> str:
    return (TODAY + timedelta(days=offset_days)).isoformat()


ENTITY_ID = "pet-1"

ENTITY_PROFILE: dict[str, Any] = {
    "id": ENTITY_ID,
    "name": "Mochi",
    "species": "cat",
    "breed": "Domestic Shorthair",
    "gender": "male",
    "date_of_birth": "2019-06-01",
    "microchip_number": "900123456789012",
    "registration_id": "REG-77",
    "avatar_url": None,
    "color": "grey tabby",
    "size": "small",
    "blood_type": "A",
    "is_spayed_neutered": True,
    "weight_current": 4.6,
    "weight_unit": "kg",
    "body_condition_score": 6,
    "notes": "Hides under the bed during storms.",
    "emergency_contact_name": "Alex Chen",
    "emergency_contact_phone": "+1 555 0142",
    "vet_name": "Dr. Patel",
    "vet_phone": "+1 555 0177",
}


def sample_records() -> dict[str, list[dict[str, Any]]]:
    """One entity's records, dated relative to the fixed test clock."""
    return {
        "vaccination": [
            {"id": "vac-fvrcp", "vaccine_name": "FVRCP", "administered_date": _iso(-360),
             "next_due_date": _iso(5), "veterinarian": "Dr. Patel"},
            {"id": "vac-rabies", "vaccine_name": "Rabies", "administered_date": _iso(-380),
             "next_due_date": _iso(-3), "veterinarian": "Dr. Patel"},
        ],
        "medication": [
            {"id": "med-gaba", "name": "Gabapentin", "dosage": "50", "dosage_unit": "mg",
             "frequency": "as needed", "start_date": _iso(-40), "last_refill_date": _iso(-20),
             "refill_every_days": 30, "is_ongoing": True},
        ],
        "visit": [
            {"id": "visit-dental", "visit_date": _iso(-14), "visit_type": "dental",
             "reason": "Dental cleaning", "follow_up_date": _iso(20)},
            {"id": "visit-annual", "visit_date": _iso(-200), "visit_type": "checkup",
             "reason": "Annual exam"},
        ],
        "weight": [
            {"id": "w-2", "weight": 4.6, "unit": "kg", "recorded_date": _iso(-14)},
            {"id": "w-1", "weight": 10.0, "unit": "lb", "recorded_date": _iso(-200)},
        ],
        "allergy": [
            {"id": "allergy-1", "allergen": "Chicken", "reaction": "Itching",
             "severity": "mild"},
        ],
        "condition": [
            {"id": "cond-1", "name": "Hyperthyroidism", "diagnosed_date": _iso(-300),
             "status": "managed"},
        ],
        "document": [
            {"id": "doc-1", "name": "Dental x-ray", "category": "imaging",
             "created_at": _iso(-14), "file_type": "image/png",
             "storage_path": "private/pet-1/xray.png"},
        ],
    }


class FakeRecordStore:
    """In-memory RecordStore with per-source failure and delay injection.

    Every fetch is recorded in ``calls`` so tests can assert which sources
    were read. The entity profile is the "profile" source.
    """

    def __init__(
        self,
        records: dict[str, dict[str, list[dict[str, Any]]]] | None = None,
        profiles: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self.records = records if records is not None else {ENTITY_ID: sample_records()}
        self.profiles = profiles if profiles is not None else {ENTITY_ID: dict(ENTITY_PROFILE)}
        self.failing: set[str] = set()
        self.delays: dict[str, float] = {}
        self.calls: list[tuple[str, str]] = []

    async def list_by_entity(self, entity_id: str, category: str) -> list[dict[str, Any]]:
        self.calls.append((entity_id, category))
        if category in self.delays:
            await asyncio.sleep(self.delays[category])
        if category in self.failing:
            raise ConnectionError(f"{category} source unavailable")
        rows = self.records.get(entity_id, {}).get(category, [])
        return [{**row, "entity_id": entity_id} for row in rows]

    async def get_entity(self, entity_id: str) -> dict[str, Any] | None:
        if "profile" in self.delays:
            await asyncio.sleep(self.delays["profile"])
        if "profile" in self.failing:
            raise ConnectionError("profile source unavailable")
        profile = self.profiles.get(entity_id)
        return dict(profile) if profile is not None else None

    @property
    def data_source(self) -> str:
        return "fake"

    def categories_read(self) -> set[str]:
        return {category for _, category in self.calls}


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_store():
    """Factory for stores with custom records or profiles."""
    return FakeRecordStore


@pytest.fixture
def profile() -> dict[str, Any]:
    return dict(ENTITY_PROFILE)
