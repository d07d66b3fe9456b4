"""PawPass Health server — application factories.

This module provides:
- create_app() for the MCP server (integration tests create fresh instances)
- create_http_app() for the HTTP API, with the MCP server mounted under /tools
- Module-level `mcp` and `app` variables for discovery by fastmcp and uvicorn
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import FastAPI
from fastmcp import FastMCP

from pawpass.core.config.settings import Settings, get_settings
from pawpass.core.server.services import Services, build_services, utcnow
from pawpass.core.storage.database import HealthDatabase
from pawpass.domains.health.connectors import RecordStore
from pawpass.domains.health.resources.rule_tables import register_rule_table_resources
from pawpass.domains.health.routes import alerts, public, shares
from pawpass.domains.health.routes.deps import register_error_handlers
from pawpass.domains.health.tools.alert_tools import register_alert_tools
from pawpass.domains.health.tools.audit_tools import register_audit_tools
from pawpass.domains.health.tools.rule_tools import register_rule_tools
from pawpass.domains.health.tools.share_tools import register_share_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "PawPass Health"
VERSION = "0.1.0"


def _resolve_services(
    services: Services | None,
    settings_override: Settings | None,
    database_override: HealthDatabase | None,
    record_store_override: RecordStore | None,
    clock: Callable[[], datetime] | None,
) -> Services:
    if services is not None:
        return services
    return build_services(
        settings_override or get_settings(),
        database=database_override,
        record_store=record_store_override,
        clock=clock or utcnow,
    )


def create_app(
    *,
    services: Services | None = None,
    settings_override: Settings | None = None,
    database_override: HealthDatabase | None = None,
    record_store_override: RecordStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastMCP:
    """Create and configure the PawPass Health MCP server.

    This is the main application factory. It:
    1. Builds (or reuses) the service container
    2. Creates the FastMCP server instance
    3. Registers alert, share link, rule and audit tools
    4. Registers the rule table resource
    """
    services = _resolve_services(
        services, settings_override, database_override, record_store_override, clock
    )

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "PawPass Health — owner-side tools for an animal's health record. "
            "Ranks due and overdue vaccinations, medications and follow-ups, "
            "manages scoped, expiring share links, and checks medications, "
            "weights and body condition against reference tables."
        ),
    )

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": VERSION,
            "record_source": services.store.data_source,
            "encrypted_records": services.records is not None,
            "schema_version": services.database.get_schema_version(),
            "disclosures_recorded": services.audit_logger.count_disclosures(),
        }

    register_alert_tools(server, services.alert_service, services.alert_limit)
    register_share_tools(
        server, services.token_service, services.clock, services.audit_logger
    )
    register_rule_tools(server, services.rule_tables, services.audit_logger)
    register_audit_tools(server, services.audit_logger, services.clock)
    logger.info("Alert, share link, rule and audit tools registered")

    register_rule_table_resources(server, services.rule_tables)

    return server


def create_http_app(
    *,
    services: Services | None = None,
    settings_override: Settings | None = None,
    database_override: HealthDatabase | None = None,
    record_store_override: RecordStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create the HTTP API: owner routes, the public share route and MCP at /tools/mcp."""
    services = _resolve_services(
        services, settings_override, database_override, record_store_override, clock
    )
    mcp_server = create_app(services=services)
    mcp_app = mcp_server.http_app(path="/mcp")

    http_app = FastAPI(title=SERVER_NAME, version=VERSION, lifespan=mcp_app.lifespan)
    http_app.state.services = services
    register_error_handlers(http_app)

    http_app.include_router(alerts.router)
    http_app.include_router(shares.router)
    http_app.include_router(public.router)
    http_app.mount("/tools", mcp_app)

    @http_app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "server": SERVER_NAME, "version": VERSION}

    return http_app


# Module-level instances for discovery (fastmcp: "app.py:mcp", uvicorn: "app:app").
# Lazy: only created when requested (not when tests import the factories).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    if name == "app":
        global app  # noqa: PLW0603
        app = create_http_app()
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
