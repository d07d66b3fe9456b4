"""Data models for the persistence layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any

from pawpass.core.privacy.policy import SharePermissions

# Record categories held in ``health_records``. The first four feed the
# alert timeline; the rest are only read when a share link discloses them.
VACCINATION = "vaccination"
MEDICATION = "medication"
VISIT = "visit"
WEIGHT = "weight"
ALLERGY = "allergy"
CONDITION = "condition"
DOCUMENT = "document"

TIMELINE_CATEGORIES = (VACCINATION, MEDICATION, VISIT, WEIGHT)
RECORD_CATEGORIES = TIMELINE_CATEGORIES + (ALLERGY, CONDITION, DOCUMENT)

# Payload field used as the indexed ``record_date`` column, per category.
RECORD_DATE_FIELDS: dict[str, str] = {
    VACCINATION: "administered_date",
    MEDICATION: "start_date",
    VISIT: "visit_date",
    WEIGHT: "recorded_date",
    ALLERGY: "created_at",
    CONDITION: "diagnosed_date",
    DOCUMENT: "created_at",
}

# A link with less than this much lifetime left is shown as expiring soon.
EXPIRING_SOON_WINDOW = timedelta(days=3)


@dataclass
class EntityProfile:
    """The animal whose records are aggregated and disclosed.

    Profile fields are stored encrypted; only ``id`` and ``owner_id`` are
    plain columns.
    """

    id: str
    name: str
    species: str = ""
    owner_id: str | None = None
    breed: str | None = None
    gender: str | None = None
    date_of_birth: str | None = None
    microchip_number: str | None = None
    registration_id: str | None = None
    avatar_url: str | None = None
    color: str | None = None
    size: str | None = None
    blood_type: str | None = None
    is_spayed_neutered: bool | None = None
    weight_current: float | None = None
    weight_unit: str | None = None
    body_condition_score: int | None = None
    notes: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    vet_name: str | None = None
    vet_phone: str | None = None
    created_at: str = ""

    def profile_fields(self) -> dict[str, Any]:
        """Everything except the plain columns, for the encrypted blob."""
        data = asdict(self)
        for key in ("id", "owner_id", "created_at"):
            data.pop(key)
        return data


@dataclass
class ShareToken:
    """A scoped, time-limited disclosure link.

    ``token`` carries the raw bearer value only on the object returned at
    generation time; anything read back from storage has ``token=None``.
    """

    id: str
    entity_id: str
    permissions: SharePermissions
    created_at: datetime
    expires_at: datetime
    active: bool = True
    accessed_count: int = 0
    last_accessed_at: datetime | None = None
    revoked_at: datetime | None = None
    token: str | None = field(default=None, repr=False)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def status(self, now: datetime) -> str:
        """Owner-facing state: revoked, expired, expiring_soon or active."""
        if not self.active:
            return "revoked"
        if self.is_expired(now):
            return "expired"
        if self.expires_at - now < EXPIRING_SOON_WINDOW:
            return "expiring_soon"
        return "active"

    def without_token(self) -> ShareToken:
        return replace(self, token=None)

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "entity_id": self.entity_id,
            "permissions": self.permissions.to_flags(),
            "active": self.active,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "accessed_count": self.accessed_count,
            "last_accessed_at": (
                self.last_accessed_at.isoformat() if self.last_accessed_at else None
            ),
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
        }
        if now is not None:
            data["status"] = self.status(now)
        if self.token is not None:
            data["token"] = self.token
        return data
