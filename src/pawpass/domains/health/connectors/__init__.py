"""Record store connectors — abstraction layer for health record retrieval."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RecordStore(Protocol):
    """Read-only interface the aggregator and resolver fetch records through.

    Implementations may be the encrypted SQLite store, the built-in demo
    data, or a remote backend; callers never know which.
    """

    async def list_by_entity(self, entity_id: str, category: str) -> list[dict[str, Any]]:
        """Records of one category for an entity, newest first."""
        ...

    async def get_entity(self, entity_id: str) -> dict[str, Any] | None:
        """The entity's profile fields, or None if it does not exist."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the active record source: 'sqlite' or 'mock'."""
        ...
