"""PostgreSQL implementation of QuestionBank."""

from __future__ import annotations

import json
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_service.db.tables import AssessmentRow, QuestionRow
from assessment_service.models.assessment import Assessment, Question, QuestionOption
from assessment_service.models.serialization import correct_answer_from_dict


class PgQuestionBank:
    """Satisfies the QuestionBank Protocol; read-only."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_assessment(self, assessment_id: UUID) -> Assessment | None:
        stmt = select(AssessmentRow).where(AssessmentRow.id == assessment_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None

        q_stmt = (
            select(QuestionRow)
            .where(QuestionRow.assessment_id == assessment_id)
            .order_by(QuestionRow.position)
        )
        question_rows = (await self._session.execute(q_stmt)).scalars().all()
        return _row_to_assessment(row, [_row_to_question(q) for q in question_rows])


def _row_to_question(row: QuestionRow) -> Question:
    options = tuple(
        QuestionOption(id=str(o["id"]), text=str(o.get("text", "")))
        for o in json.loads(row.options_json or "[]")
    )
    correct = (
        correct_answer_from_dict(json.loads(row.correct_answer_json))
        if row.correct_answer_json
        else None
    )
    return Question(
        id=row.id,
        type=row.type,
        text=row.text,
        marks=row.marks,
        correct_answer=correct,
        options=options,
        explanation=row.explanation,
        position=row.position,
    )


def _row_to_assessment(row: AssessmentRow, questions: list[Question]) -> Assessment:
    return Assessment(
        id=row.id,
        title=row.title,
        questions=tuple(questions),
        type=row.type,
        status=row.status,
        duration_minutes=row.duration_minutes,
        start_time=row.start_time,
        end_time=row.end_time,
        passing_marks=row.passing_marks,
        max_attempts=row.max_attempts,
        negative_marking_percent=row.negative_marking_percent,
        shuffle_questions=row.shuffle_questions,
        shuffle_options=row.shuffle_options,
        show_result_after=row.show_result_after,
    )
