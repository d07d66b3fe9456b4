"""Rule table loader — reads the interaction, drug-family and body-condition
tables from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path(__file__).resolve().parent / "rule_tables.yaml"


@dataclass(frozen=True)
class BodyCondition:
    """Display label for a body condition score."""

    label: str
    color: str


@dataclass(frozen=True)
class RuleTables:
    """Lowercased lookup tables used by the rule library."""

    interactions: dict[str, tuple[str, ...]]
    drug_families: dict[str, tuple[str, ...]]
    body_condition: dict[int, BodyCondition]

    def as_dict(self) -> dict[str, Any]:
        return {
            "interactions": {k: list(v) for k, v in self.interactions.items()},
            "drug_families": {k: list(v) for k, v in self.drug_families.items()},
            "body_condition": {
                score: {"label": bc.label, "color": bc.color}
                for score, bc in self.body_condition.items()
            },
        }


def parse_rule_tables(data: dict[str, Any]) -> RuleTables:
    """Build :class:`RuleTables` from a parsed YAML mapping."""

    def _name_table(section: str) -> dict[str, tuple[str, ...]]:
        raw = data.get(section) or {}
        return {
            str(key).strip().lower(): tuple(str(v).strip().lower() for v in values or ())
            for key, values in raw.items()
        }

    body_condition = {
        int(score): BodyCondition(label=str(entry["label"]), color=str(entry["color"]))
        for score, entry in (data.get("body_condition") or {}).items()
    }
    return RuleTables(
        interactions=_name_table("interactions"),
        drug_families=_name_table("drug_families"),
        body_condition=body_condition,
    )


def load_rule_tables_file(path: str | Path) -> RuleTables:
    """Parse a rule table YAML file."""
    with open(path) as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}
    tables = parse_rule_tables(data)
    logger.info(
        "Loaded rule tables from %s (%d interaction keys, %d drug families)",
        path,
        len(tables.interactions),
        len(tables.drug_families),
    )
    return tables


@lru_cache(maxsize=1)
def default_rule_tables() -> RuleTables:
    """The packaged tables, loaded once per process."""
    return load_rule_tables_file(_DEFAULT_PATH)
