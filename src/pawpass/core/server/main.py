"""PawPass server entry point — ``python -m pawpass.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

import uvicorn

from pawpass.core.config.settings import get_settings
from pawpass.core.server.app import create_http_app


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the HTTP API (with the MCP server mounted at /tools/mcp)."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.pawpass_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger = logging.getLogger(__name__)
    if not settings.pawpass_allow_insecure_bind and not _is_loopback_host(settings.pawpass_host):
        raise RuntimeError(
            "Refusing to bind PawPass to a non-loopback host without an owner auth layer. "
            "Set PAWPASS_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting PawPass Health server on %s:%d",
        settings.pawpass_host,
        settings.pawpass_port,
    )

    app = create_http_app(settings_override=settings)
    uvicorn.run(
        app,
        host=settings.pawpass_host,
        port=settings.pawpass_port,
        log_level=settings.pawpass_log_level.lower(),
        # Access log lines would carry raw tokens from /p/{token} paths.
        access_log=False,
    )


if __name__ == "__main__":
    run()
