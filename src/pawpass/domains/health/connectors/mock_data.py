"""Demo health records for development and testing.

One healthy adult dog with a realistic mix of records: a vaccination
falling due within the week, one already overdue, an ongoing medication
with a monthly refill, a completed visit with a booked follow-up, and a
short weight history. Dates are generated relative to ``today`` so the
demo always produces the same alert mix.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

DEMO_ENTITY_ID = "demo-pet"


def _iso(today: date, offset_days: int) -> str:
    return (today + timedelta(days=offset_days)).isoformat()


def get_mock_profile() -> dict[str, Any]:
    """Return the demo entity profile."""
    return {
        "id": DEMO_ENTITY_ID,
        "name": "Biscuit",
        "species": "dog",
        "breed": "Border Collie",
        "gender": "female",
        "date_of_birth": "2021-04-12",
        "microchip_number": "985112004567890",
        "registration_id": "PP-2021-0412",
        "avatar_url": None,
        "color": "black and white",
        "size": "medium",
        "blood_type": "DEA 1.1 negative",
        "is_spayed_neutered": True,
        "weight_current": 18.4,
        "weight_unit": "kg",
        "body_condition_score": 5,
        "notes": "Nervous around fireworks. Loves tennis balls.",
        "emergency_contact_name": "Sam Rivera",
        "emergency_contact_phone": "+1 555 0100",
        "vet_name": "Dr. Okafor, Riverside Animal Clinic",
        "vet_phone": "+1 555 0199",
    }


def get_mock_vaccinations(today: date) -> list[dict[str, Any]]:
    """Return demo vaccination records, newest first."""
    return [
        {
            "id": "demo-vacc-bordetella",
            "entity_id": DEMO_ENTITY_ID,
            "vaccine_name": "Bordetella",
            "administered_date": _iso(today, -360),
            "next_due_date": _iso(today, 5),
            "veterinarian": "Dr. Okafor",
            "batch_number": "BB-7781",
        },
        {
            "id": "demo-vacc-lepto",
            "entity_id": DEMO_ENTITY_ID,
            "vaccine_name": "Leptospirosis",
            "administered_date": _iso(today, -370),
            "next_due_date": _iso(today, -5),
            "veterinarian": "Dr. Okafor",
            "batch_number": "LP-2210",
        },
        {
            "id": "demo-vacc-rabies",
            "entity_id": DEMO_ENTITY_ID,
            "vaccine_name": "Rabies",
            "administered_date": _iso(today, -400),
            "next_due_date": _iso(today, 695),
            "veterinarian": "Dr. Okafor",
            "batch_number": "RB-0932",
        },
    ]


def get_mock_medications(today: date) -> list[dict[str, Any]]:
    """Return demo medication records, newest first."""
    return [
        {
            "id": "demo-med-carprofen",
            "entity_id": DEMO_ENTITY_ID,
            "name": "Carprofen",
            "dosage": "25",
            "dosage_unit": "mg",
            "frequency": "twice daily",
            "start_date": _iso(today, -10),
            "end_date": _iso(today, 4),
            "is_ongoing": False,
        },
        {
            "id": "demo-med-heartworm",
            "entity_id": DEMO_ENTITY_ID,
            "name": "Heartworm preventive",
            "dosage": "1",
            "dosage_unit": "chew",
            "frequency": "monthly",
            "start_date": _iso(today, -200),
            "last_refill_date": _iso(today, -18),
            "refill_every_days": 30,
            "is_ongoing": True,
        },
    ]


def get_mock_visits(today: date) -> list[dict[str, Any]]:
    """Return demo vet visit records, newest first."""
    return [
        {
            "id": "demo-visit-limp",
            "entity_id": DEMO_ENTITY_ID,
            "visit_date": _iso(today, -10),
            "visit_type": "consultation",
            "reason": "Left foreleg limp",
            "diagnosis": "Soft tissue strain",
            "follow_up_date": _iso(today, 20),
            "clinic_name": "Riverside Animal Clinic",
        },
        {
            "id": "demo-visit-checkup",
            "entity_id": DEMO_ENTITY_ID,
            "visit_date": _iso(today, -120),
            "visit_type": "checkup",
            "reason": "Annual wellness exam",
            "diagnosis": None,
            "clinic_name": "Riverside Animal Clinic",
        },
    ]


def get_mock_weights(today: date) -> list[dict[str, Any]]:
    """Return demo weight readings, newest first."""
    return [
        {"id": "demo-weight-3", "entity_id": DEMO_ENTITY_ID,
         "weight": 18.4, "unit": "kg", "recorded_date": _iso(today, -10)},
        {"id": "demo-weight-2", "entity_id": DEMO_ENTITY_ID,
         "weight": 40.1, "unit": "lb", "recorded_date": _iso(today, -120)},
        {"id": "demo-weight-1", "entity_id": DEMO_ENTITY_ID,
         "weight": 17.6, "unit": "kg", "recorded_date": _iso(today, -400)},
    ]


def get_mock_allergies(today: date) -> list[dict[str, Any]]:
    """Return demo allergy records."""
    return [
        {
            "id": "demo-allergy-penicillin",
            "entity_id": DEMO_ENTITY_ID,
            "allergen": "Penicillin",
            "reaction": "Hives",
            "severity": "moderate",
            "created_at": _iso(today, -300),
        },
    ]


def get_mock_conditions(today: date) -> list[dict[str, Any]]:
    """Return demo chronic condition records."""
    return [
        {
            "id": "demo-condition-skin",
            "entity_id": DEMO_ENTITY_ID,
            "name": "Seasonal atopic dermatitis",
            "diagnosed_date": _iso(today, -500),
            "status": "managed",
        },
    ]


def get_mock_documents(today: date) -> list[dict[str, Any]]:
    """Return demo document metadata (never file contents)."""
    return [
        {
            "id": "demo-doc-rabies-cert",
            "entity_id": DEMO_ENTITY_ID,
            "name": "Rabies certificate",
            "category": "vaccination",
            "file_type": "application/pdf",
            "created_at": _iso(today, -400),
            "storage_path": "documents/demo-pet/rabies.pdf",
        },
    ]
