"""MCP Resources for health rule table discovery."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastmcp import FastMCP

if TYPE_CHECKING:
    from pawpass.domains.health.domain_logic.rule_tables import RuleTables


def register_rule_table_resources(mcp: FastMCP, tables: RuleTables) -> None:
    """Register the rule table resource on the MCP server."""

    @mcp.resource("rules://health/tables")
    def health_rule_tables_resource() -> str:
        """The interaction, drug-family and body condition tables the checks use."""
        return json.dumps(tables.as_dict(), indent=2)
