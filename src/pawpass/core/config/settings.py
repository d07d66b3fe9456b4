"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """PawPass engine configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: owner authentication lives in an upstream proxy,
    # so exposing the owner routes directly would publish them unauthenticated.
    pawpass_host: str = "127.0.0.1"
    pawpass_port: int = 8011
    pawpass_log_level: str = "info"
    pawpass_allow_insecure_bind: bool = False

    # Storage
    db_path: str = "~/.pawpass/pawpass.db"

    # Encryption (health record payloads). Without a key the engine serves
    # the built-in demo record source.
    encryption_key: str = ""

    # Sharing
    public_base_url: str = "http://127.0.0.1:8011"

    # Aggregation
    source_fetch_timeout_seconds: float = 5.0

    # Alerts
    alert_display_limit: int = 5


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
