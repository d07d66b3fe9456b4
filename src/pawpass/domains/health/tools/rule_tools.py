"""MCP tools exposing the health rule library as owner-side checks.

Rule results are inputs to the owner's decisions, not diagnoses: every
tool reports what the tables say and nothing more.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from pawpass.core.errors import ValidationError, error_payload
from pawpass.domains.health.domain_logic.rule_tables import RuleTables
from pawpass.domains.health.domain_logic.rules import (
    body_condition_category,
    body_condition_label,
    matching_allergens,
    medication_interactions,
    validate_dosage,
    weight_trend,
)

if TYPE_CHECKING:
    from pawpass.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


def register_rule_tools(
    mcp: FastMCP,
    tables: RuleTables,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register rule-library tools on the MCP server."""

    @mcp.tool
    async def medication_safety_check(
        ctx: Context,
        medication: str,
        active_medications: list[str] | None = None,
        allergens: list[str] | None = None,
        dosage: str | None = None,
    ) -> str:
        """Check a medication against current medications, known allergies and dosage bounds.

        Args:
            medication: The medication being considered.
            active_medications: Names of medications the animal is currently on.
            allergens: The animal's recorded allergens.
            dosage: Optional dosage amount to sanity-check.
        """
        start_time = time.monotonic()
        interactions = medication_interactions(
            medication, active_medications or [], tables=tables
        )
        allergy_hits = matching_allergens(medication, allergens or [], tables=tables)

        result: dict = {
            "status": "ok",
            "medication": medication,
            "interaction_warnings": interactions,
            "allergy_matches": allergy_hits,
            "flagged": bool(interactions or allergy_hits),
        }
        if dosage is not None:
            check = validate_dosage(dosage)
            result["dosage"] = {"valid": check.valid, "error": check.error}
            result["flagged"] = result["flagged"] or not check.valid

        elapsed_ms = (time.monotonic() - start_time) * 1000
        if audit_logger is not None:
            audit_logger.log_tool_call(
                "medication_safety_check",
                {
                    "medication": medication,
                    "active_medications": active_medications,
                    "allergens": allergens,
                    "dosage": dosage,
                },
                duration_ms=elapsed_ms,
                # Keep metadata PHI-free.
                metadata={"flagged": result["flagged"]},
            )
        return json.dumps(result, indent=2)

    @mcp.tool
    async def weight_trend_check(
        ctx: Context,
        current: float,
        previous: float,
        current_unit: str = "kg",
        previous_unit: str = "kg",
    ) -> str:
        """Compare two weight readings, converting units as needed.

        Args:
            current: The latest weight reading.
            previous: The earlier reading to compare against.
            current_unit: 'kg' or 'lb' (default: kg).
            previous_unit: 'kg' or 'lb' (default: kg).
        """
        start_time = time.monotonic()
        tool_input = {
            "current": current,
            "previous": previous,
            "current_unit": current_unit,
            "previous_unit": previous_unit,
        }
        try:
            trend = weight_trend(current, previous, current_unit, previous_unit)
        except ValidationError as exc:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            if audit_logger is not None:
                audit_logger.log_tool_call(
                    "weight_trend_check",
                    tool_input,
                    duration_ms=elapsed_ms,
                    status="failure",
                    error_type=type(exc).__name__,
                )
            return json.dumps(error_payload(exc))

        elapsed_ms = (time.monotonic() - start_time) * 1000
        if audit_logger is not None:
            audit_logger.log_tool_call(
                "weight_trend_check", tool_input, duration_ms=elapsed_ms
            )
        return json.dumps({"status": "ok", **trend.as_dict()}, indent=2)

    @mcp.tool
    async def body_condition(ctx: Context, score: int) -> str:
        """Label a 9-point body condition score.

        Args:
            score: Body condition score from 1 (emaciated) to 9 (severely obese).
        """
        start_time = time.monotonic()
        label = body_condition_label(score, tables=tables)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        if audit_logger is not None:
            audit_logger.log_tool_call(
                "body_condition", {"score": score}, duration_ms=elapsed_ms
            )
        return json.dumps({
            "status": "ok",
            "score": score,
            "label": label.label,
            "color": label.color,
            "category": body_condition_category(score),
        }, indent=2)
