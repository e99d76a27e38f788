from __future__ import annotations

from typing import Protocol
from uuid import UUID

from assessment_service.models.attempt import Answer


class AnswerRepo(Protocol):
    async def upsert(self, answer: Answer) -> None: ...
    async def get(self, attempt_id: UUID, question_id: UUID) -> Answer | None: ...
    async def list_for_attempt(self, attempt_id: UUID) -> list[Answer]: ...


class InMemoryAnswerRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Answer] = {}

    async def upsert(self, answer: Answer) -> None:
        # Last write to arrive wins; there is no version check.
        self._store[(answer.attempt_id, answer.question_id)] = answer

    async def get(self, attempt_id: UUID, question_id: UUID) -> Answer | None:
        return self._store.get((attempt_id, question_id))

    async def list_for_attempt(self, attempt_id: UUID) -> list[Answer]:
        return [a for (aid, _), a in self._store.items() if aid == attempt_id]

    def clear(self) -> None:
        self._store.clear()
