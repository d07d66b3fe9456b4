"""Concrete RecordStore implementations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict
from datetime import date
from typing import Any

from pawpass.core.storage.models import (
    ALLERGY,
    CONDITION,
    DOCUMENT,
    MEDICATION,
    VACCINATION,
    VISIT,
    WEIGHT,
)
from pawpass.core.storage.repository import HealthRecordRepository
from pawpass.domains.health.connectors.mock_data import (
    DEMO_ENTITY_ID,
    get_mock_allergies,
    get_mock_conditions,
    get_mock_documents,
    get_mock_medications,
    get_mock_profile,
    get_mock_vaccinations,
    get_mock_visits,
    get_mock_weights,
)

logger = logging.getLogger(__name__)

_MOCK_GENERATORS: dict[str, Callable[[date], list[dict[str, Any]]]] = {
    VACCINATION: get_mock_vaccinations,
    MEDICATION: get_mock_medications,
    VISIT: get_mock_visits,
    WEIGHT: get_mock_weights,
    ALLERGY: get_mock_allergies,
    CONDITION: get_mock_conditions,
    DOCUMENT: get_mock_documents,
}


class MockRecordStore:
    """Serves the built-in demo pet. Always available.

    Args:
        today: Callable returning the reference date the demo records are
            laid out around (defaults to ``date.today``).
    """

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today

    async def list_by_entity(self, entity_id: str, category: str) -> list[dict[str, Any]]:
        if entity_id != DEMO_ENTITY_ID:
            return []
        generator = _MOCK_GENERATORS.get(category)
        return generator(self._today()) if generator else []

    async def get_entity(self, entity_id: str) -> dict[str, Any] | None:
        if entity_id != DEMO_ENTITY_ID:
            return None
        return get_mock_profile()

    @property
    def data_source(self) -> str:
        return "mock"


class StoredRecordProvider:
    """RecordStore backed by the encrypted health record repository."""

    def __init__(self, repository: HealthRecordRepository) -> None:
        self._repo = repository

    async def list_by_entity(self, entity_id: str, category: str) -> list[dict[str, Any]]:
        return self._repo.list_records(entity_id, category)

    async def get_entity(self, entity_id: str) -> dict[str, Any] | None:
        profile = self._repo.get_entity(entity_id)
        if profile is None:
            return None
        return asdict(profile)

    @property
    def data_source(self) -> str:
        return "sqlite"
