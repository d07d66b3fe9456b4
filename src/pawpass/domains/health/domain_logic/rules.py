"""Health rule library — small, pure domain rules that gate which alerts fire.

Weight trends with unit normalisation, medication interaction and allergy
lookups, dosage bounds, refill dates and body condition labels. No I/O
beyond the one-time load of the packaged rule tables; every function takes
an optional ``tables`` argument so callers and tests can supply their own.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal

from pawpass.core.errors import ValidationError
from pawpass.domains.health.domain_logic.rule_tables import (
    BodyCondition,
    RuleTables,
    default_rule_tables,
)

# ---------------------------------------------------------------------------
# Policy constants
# ---------------------------------------------------------------------------

LB_PER_KG = 2.20462

# |change| below this percentage is reported as stable.
STABLE_WEIGHT_CHANGE_PCT = 2.0

MAX_DOSAGE = 10000.0

UNKNOWN_BODY_CONDITION = BodyCondition(label="Unknown", color="#6B7280")

_UNIT_ALIASES = {
    "kg": "kg",
    "kgs": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "lb": "lb",
    "lbs": "lb",
    "pound": "lb",
    "pounds": "lb",
}

TrendDirection = Literal["up", "down", "stable"]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WeightTrend:
    """Signed percentage change relative to the previous reading."""

    change_percent: float
    direction: TrendDirection

    def as_dict(self) -> dict[str, float | str]:
        return {"change_percent": round(self.change_percent, 2), "direction": self.direction}


@dataclass(frozen=True)
class DosageCheck:
    valid: bool
    error: str | None = None


# ---------------------------------------------------------------------------
# Weight
# ---------------------------------------------------------------------------

def normalize_unit(unit: str) -> str:
    """Map a weight unit spelling to ``kg`` or ``lb``."""
    key = (unit or "").strip().lower()
    if key not in _UNIT_ALIASES:
        raise ValidationError("unit", f"unsupported weight unit: {unit!r}")
    return _UNIT_ALIASES[key]


def convert_weight(value: float, from_unit: str, to_unit: str) -> float:
    src, dst = normalize_unit(from_unit), normalize_unit(to_unit)
    if src == dst:
        return float(value)
    return value * LB_PER_KG if src == "kg" else value / LB_PER_KG


def _weight_value(field: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(field, "must be a number")
    if not math.isfinite(value):
        raise ValidationError(field, "must be a finite number")
    return float(value)


def weight_trend(
    current: float,
    previous: float,
    current_unit: str,
    previous_unit: str,
) -> WeightTrend:
    """Compare two weight readings that may be in different units.

    Raises:
        ValidationError: If either value is not a finite number, the previous
            reading is not positive, or a unit is unsupported.
    """
    current_value = _weight_value("current", current)
    previous_value = _weight_value("previous", previous)
    if previous_value <= 0:
        raise ValidationError("previous", "must be greater than 0")
    if current_value < 0:
        raise ValidationError("current", "must not be negative")

    current_kg = convert_weight(current_value, current_unit, "kg")
    previous_kg = convert_weight(previous_value, previous_unit, "kg")
    change = (current_kg - previous_kg) / previous_kg * 100

    if abs(change) < STABLE_WEIGHT_CHANGE_PCT:
        direction: TrendDirection = "stable"
    elif change > 0:
        direction = "up"
    else:
        direction = "down"
    return WeightTrend(change_percent=change, direction=direction)


# ---------------------------------------------------------------------------
# Medications and allergies
# ---------------------------------------------------------------------------

def medication_interactions(
    candidate: str,
    active_medications: list[str],
    *,
    tables: RuleTables | None = None,
) -> list[str]:
    """Warnings for active medications that conflict with ``candidate``.

    One warning per conflicting active medication, in input order.
    """
    tables = tables or default_rule_tables()
    candidate_lower = (candidate or "").strip().lower()
    if not candidate_lower:
        return []

    conflicting_classes = {
        conflict
        for drug_class, conflicts in tables.interactions.items()
        if drug_class in candidate_lower
        for conflict in conflicts
    }
    if not conflicting_classes:
        return []

    warnings: list[str] = []
    for active in active_medications:
        active_lower = (active or "").strip().lower()
        if active_lower and any(c in active_lower for c in conflicting_classes):
            warnings.append(f"Possible interaction between {candidate} and {active}")
    return warnings


def allergy_match(
    medication: str,
    allergen: str,
    *,
    tables: RuleTables | None = None,
) -> bool:
    """True if ``medication`` should be flagged for an animal allergic to ``allergen``."""
    med = (medication or "").strip().lower()
    allergen_lower = (allergen or "").strip().lower()
    if not med or not allergen_lower:
        return False

    if med in allergen_lower or allergen_lower in med:
        return True

    tables = tables or default_rule_tables()
    for family, members in tables.drug_families.items():
        if family in allergen_lower and any(member in med for member in members):
            return True
    return False


def matching_allergens(
    medication: str,
    allergens: list[str],
    *,
    tables: RuleTables | None = None,
) -> list[str]:
    return [a for a in allergens if allergy_match(medication, a, tables=tables)]


def validate_dosage(value: object) -> DosageCheck:
    """Dosage must be a number with ``0 < value <= MAX_DOSAGE``."""
    if isinstance(value, bool):
        return DosageCheck(valid=False, error="Dosage must be a number")
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return DosageCheck(valid=False, error="Dosage must be a number")
    if math.isnan(number):
        return DosageCheck(valid=False, error="Dosage must be a number")
    if number <= 0:
        return DosageCheck(valid=False, error="Dosage must be greater than 0")
    if number > MAX_DOSAGE:
        return DosageCheck(valid=False, error="Dosage seems unusually high")
    return DosageCheck(valid=True)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def parse_record_date(value: object, field: str = "date") -> date:
    """Parse a stored, timezone-less record date.

    Accepts ``date``/``datetime`` objects and ISO strings; a time component
    is ignored (records are kept as calendar dates).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value.strip()) >= 10:
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(field, f"not a valid date: {value!r}")


def next_refill_date(start: date | str, every_n_days: int) -> date:
    """Calendar-day arithmetic: ``start + every_n_days``."""
    if isinstance(every_n_days, bool) or not isinstance(every_n_days, int):
        raise ValidationError("every_n_days", "must be a whole number of days")
    if every_n_days < 1:
        raise ValidationError("every_n_days", "must be at least 1")
    return parse_record_date(start, "start_date") + timedelta(days=every_n_days)


# ---------------------------------------------------------------------------
# Body condition
# ---------------------------------------------------------------------------

def body_condition_label(
    score: object, *, tables: RuleTables | None = None
) -> BodyCondition:
    """Label and colour for a 1..9 score; anything else is ``UNKNOWN_BODY_CONDITION``."""
    if isinstance(score, bool) or not isinstance(score, int):
        return UNKNOWN_BODY_CONDITION
    tables = tables or default_rule_tables()
    return tables.body_condition.get(score, UNKNOWN_BODY_CONDITION)


def body_condition_category(score: object) -> str:
    """Coarse band for a 1..9 score: underweight, ideal, overweight, obese."""
    if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 9:
        return "unknown"
    if score <= 3:
        return "underweight"
    if score <= 5:
        return "ideal"
    if score <= 7:
        return "overweight"
    return "obese"
