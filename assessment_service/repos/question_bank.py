from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from assessment_service.models.assessment import Assessment


class QuestionBank(Protocol):
    async def get_assessment(self, assessment_id: UUID) -> Assessment | None: ...


class InMemoryQuestionBank:
    """Read side for the engine plus the two writes tests and dev seeding need."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Assessment] = {}

    async def get_assessment(self, assessment_id: UUID) -> Assessment | None:
        return self._by_id.get(assessment_id)

    def __contains__(self, assessment_id: object) -> bool:
        return assessment_id in self._by_id

    def add(self, assessment: Assessment) -> None:
        if assessment.id in self._by_id:
            raise ValueError("assessment already exists")
        self._by_id[assessment.id] = assessment

    def set_status(self, assessment_id: UUID, status: str) -> Assessment:
        existing = self._by_id.get(assessment_id)
        if existing is None:
            raise KeyError("assessment not found")
        updated = replace(existing, status=status)
        self._by_id[assessment_id] = updated
        return updated

    def clear(self) -> None:
        self._by_id.clear()
