"""PostgreSQL implementation of AnswerRepo."""

from __future__ import annotations

import json
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_service.db.tables import AnswerRow
from assessment_service.models.attempt import Answer
from assessment_service.models.serialization import (
    answer_value_from_dict,
    answer_value_to_dict,
)


class PgAnswerRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, answer: Answer) -> None:
        value_json = json.dumps(answer_value_to_dict(answer.value))
        stmt = (
            insert(AnswerRow)
            .values(
                attempt_id=answer.attempt_id,
                question_id=answer.question_id,
                value_json=value_json,
                last_written_at=answer.last_written_at,
            )
            .on_conflict_do_update(
                index_elements=["attempt_id", "question_id"],
                set_={
                    "value_json": value_json,
                    "last_written_at": answer.last_written_at,
                },
            )
        )
        await self._session.execute(stmt)

    async def get(self, attempt_id: UUID, question_id: UUID) -> Answer | None:
        stmt = select(AnswerRow).where(
            AnswerRow.attempt_id == attempt_id,
            AnswerRow.question_id == question_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_answer(row)

    async def list_for_attempt(self, attempt_id: UUID) -> list[Answer]:
        stmt = select(AnswerRow).where(AnswerRow.attempt_id == attempt_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_answer(r) for r in rows]


def _row_to_answer(row: AnswerRow) -> Answer:
    return Answer(
        attempt_id=row.attempt_id,
        question_id=row.question_id,
        value=answer_value_from_dict(json.loads(row.value_json)),
        last_written_at=row.last_written_at,
    )
