"""Disclosed view builders — the permission-filtered projection of a record.

Each :class:`FieldGroup` has exactly one builder and a declared set of
record sources. The resolver reads only the sources of the permitted
groups, so data outside them is never fetched, let alone shown. Record
rows are projected onto an explicit field list per category; anything not
listed (internal ids, storage paths) is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pawpass.core.errors import ValidationError
from pawpass.core.privacy.policy import FieldGroup, SharePermissions, filter_groups
from pawpass.core.storage.models import (
    ALLERGY,
    CONDITION,
    DOCUMENT,
    MEDICATION,
    TIMELINE_CATEGORIES,
    VACCINATION,
    VISIT,
    WEIGHT,
)
from pawpass.domains.health.connectors.aggregator import build_timeline
from pawpass.domains.health.domain_logic.alert_models import DEFAULT_ALERT_LIMIT
from pawpass.domains.health.domain_logic.alert_prioritizer import AlertPrioritizer
from pawpass.domains.health.domain_logic.rules import body_condition_label, weight_trend

logger = logging.getLogger(__name__)

# Record sources each field group reads. Profile-only groups read none.
GROUP_SOURCES: dict[FieldGroup, tuple[str, ...]] = {
    FieldGroup.IDENTIFICATION: (),
    FieldGroup.PHYSICAL: (WEIGHT,),
    FieldGroup.MEDICAL: (CONDITION, MEDICATION, VISIT),
    FieldGroup.VACCINATIONS: (VACCINATION,),
    FieldGroup.EMERGENCY: (),
    FieldGroup.ALLERGIES: (ALLERGY,),
    FieldGroup.NOTES: (),
    FieldGroup.TIMELINE: TIMELINE_CATEGORIES,
    FieldGroup.DOCUMENTS: (DOCUMENT,),
}

_RECORD_FIELDS: dict[str, tuple[str, ...]] = {
    VACCINATION: ("vaccine_name", "administered_date", "next_due_date", "veterinarian",
                  "batch_number"),
    MEDICATION: ("name", "dosage", "dosage_unit", "frequency", "start_date", "end_date",
                 "is_ongoing"),
    VISIT: ("visit_date", "visit_type", "reason", "diagnosis", "follow_up_date",
            "clinic_name"),
    WEIGHT: ("weight", "unit", "recorded_date"),
    ALLERGY: ("allergen", "reaction", "severity"),
    CONDITION: ("name", "diagnosed_date", "status"),
    DOCUMENT: ("name", "category", "created_at", "file_type"),
}


def sources_for(permissions: SharePermissions) -> list[str]:
    """Record categories the permitted groups need, deduplicated, in order."""
    categories: dict[str, None] = {}
    for group in permissions.groups:
        for category in GROUP_SOURCES[group]:
            categories.setdefault(category, None)
    return list(categories)


def project(category: str, rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep only the disclosable fields of each row."""
    keep = _RECORD_FIELDS[category]
    return [{key: row.get(key) for key in keep} for row in rows]


@dataclass
class DisclosureContext:
    """Everything a group builder may read. Only permitted sources are present."""

    profile: dict[str, Any]
    rows: dict[str, list[dict[str, Any]]]
    now: datetime
    prioritizer: AlertPrioritizer = field(default_factory=AlertPrioritizer)
    alert_limit: int = DEFAULT_ALERT_LIMIT

    def records(self, category: str) -> list[dict[str, Any]]:
        return self.rows.get(category, [])


# ---------------------------------------------------------------------------
# Group builders
# ---------------------------------------------------------------------------

def _identification(ctx: DisclosureContext) -> dict[str, Any]:
    p = ctx.profile
    return {
        "name": p.get("name"),
        "species": p.get("species"),
        "breed": p.get("breed"),
        "gender": p.get("gender"),
        "date_of_birth": p.get("date_of_birth"),
        "microchip_number": p.get("microchip_number"),
        "registration_id": p.get("registration_id"),
        "avatar_url": p.get("avatar_url"),
    }


def _latest_weight_trend(weights: list[dict[str, Any]]) -> dict[str, Any] | None:
    if len(weights) < 2:
        return None
    current, previous = weights[0], weights[1]
    try:
        trend = weight_trend(
            current.get("weight"),
            previous.get("weight"),
            current.get("unit") or "kg",
            previous.get("unit") or "kg",
        )
    except ValidationError as exc:
        logger.warning("Cannot compute weight trend: %s", exc)
        return None
    return trend.as_dict()


def _physical(ctx: DisclosureContext) -> dict[str, Any]:
    p = ctx.profile
    weights = ctx.records(WEIGHT)
    section: dict[str, Any] = {
        "color": p.get("color"),
        "size": p.get("size"),
        "blood_type": p.get("blood_type"),
        "is_spayed_neutered": p.get("is_spayed_neutered"),
        "weight_current": p.get("weight_current"),
        "weight_unit": p.get("weight_unit"),
        "weight_history": project(WEIGHT, weights),
        "weight_trend": _latest_weight_trend(weights),
    }
    score = p.get("body_condition_score")
    if score is not None:
        label = body_condition_label(score)
        section["body_condition"] = {"score": score, "label": label.label, "color": label.color}
    return section


def _medical(ctx: DisclosureContext) -> dict[str, Any]:
    return {
        "conditions": project(CONDITION, ctx.records(CONDITION)),
        "medications": project(MEDICATION, ctx.records(MEDICATION)),
        "visits": project(VISIT, ctx.records(VISIT)),
    }


def _vaccinations(ctx: DisclosureContext) -> list[dict[str, Any]]:
    return project(VACCINATION, ctx.records(VACCINATION))


def _emergency(ctx: DisclosureContext) -> dict[str, Any]:
    p = ctx.profile
    return {
        "contact_name": p.get("emergency_contact_name"),
        "contact_phone": p.get("emergency_contact_phone"),
        "vet_name": p.get("vet_name"),
        "vet_phone": p.get("vet_phone"),
    }


def _allergies(ctx: DisclosureContext) -> list[dict[str, Any]]:
    return project(ALLERGY, ctx.records(ALLERGY))


def _notes(ctx: DisclosureContext) -> str | None:
    return ctx.profile.get("notes")


def _timeline(ctx: DisclosureContext) -> dict[str, Any]:
    entity_id = str(ctx.profile.get("id", ""))
    timeline = build_timeline(
        entity_id, {c: ctx.records(c) for c in TIMELINE_CATEGORIES}
    )
    report = ctx.prioritizer.prioritize(timeline.items, ctx.now)
    return {
        "items": [
            {k: v for k, v in item.to_dict().items() if k not in ("entity_id", "details")}
            for item in timeline.items
        ],
        "alerts": [
            {k: v for k, v in alert.to_dict().items() if k not in ("entity_id", "action_target")}
            for alert in report.top(ctx.alert_limit)
        ],
    }


def _documents(ctx: DisclosureContext) -> list[dict[str, Any]]:
    return project(DOCUMENT, ctx.records(DOCUMENT))


GROUP_BUILDERS: dict[FieldGroup, Callable[[DisclosureContext], Any]] = {
    FieldGroup.IDENTIFICATION: _identification,
    FieldGroup.PHYSICAL: _physical,
    FieldGroup.MEDICAL: _medical,
    FieldGroup.VACCINATIONS: _vaccinations,
    FieldGroup.EMERGENCY: _emergency,
    FieldGroup.ALLERGIES: _allergies,
    FieldGroup.NOTES: _notes,
    FieldGroup.TIMELINE: _timeline,
    FieldGroup.DOCUMENTS: _documents,
}


# ---------------------------------------------------------------------------
# View
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DisclosedView:
    """The projection an anonymous viewer receives: permitted groups only."""

    sections: dict[str, Any]
    expires_at: datetime

    @property
    def groups(self) -> list[str]:
        return list(self.sections)

    def to_dict(self) -> dict[str, Any]:
        return {**self.sections, "expires_at": self.expires_at.isoformat()}


def build_view(
    permissions: SharePermissions,
    ctx: DisclosureContext,
    expires_at: datetime,
) -> DisclosedView:
    """Run the builder of every permitted group and nothing else."""
    sections = {group: GROUP_BUILDERS[group](ctx) for group in permissions.groups}
    return DisclosedView(sections=filter_groups(permissions, sections), expires_at=expires_at)
