"""PostgreSQL implementation of AttemptRepo.

Both invariants that need atomicity are pushed into single statements:

  - one in-progress attempt per (assessment, user): INSERT ... ON CONFLICT
    DO NOTHING against the partial unique index, then read the winner.
  - one IN_PROGRESS -> SUBMITTED transition: UPDATE ... WHERE status =
    'in_progress'.  A concurrent submitter blocks on the row lock, then
    re-evaluates the WHERE clause and updates zero rows.

claim() is SELECT ... FOR UPDATE.  Submission and autosave both take it,
so an answer is either written before the scorer reads the answers or
sees the attempt already submitted.  The lock is held until the session
commits or rolls back.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_service.db.tables import AttemptRow
from assessment_service.models.attempt import (
    IN_PROGRESS,
    SUBMITTED,
    Attempt,
    AttemptResult,
)
from assessment_service.models.serialization import result_from_dict, result_to_dict


class PgAttemptRepo:
    """Satisfies the AttemptRepo Protocol using PostgreSQL via SQLAlchemy.

    Reads use populate_existing: a row another transaction just submitted
    must not be served from the session identity map.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, attempt_id: UUID) -> Attempt | None:
        stmt = select(AttemptRow).where(AttemptRow.id == attempt_id).execution_options(
            populate_existing=True
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_attempt(row)

    @asynccontextmanager
    async def claim(self, attempt_id: UUID) -> AsyncIterator[Attempt | None]:
        stmt = (
            select(AttemptRow)
            .where(AttemptRow.id == attempt_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        yield _row_to_attempt(row) if row is not None else None

    async def get_in_progress(self, assessment_id: UUID, user_id: str) -> Attempt | None:
        stmt = select(AttemptRow).where(
            AttemptRow.assessment_id == assessment_id,
            AttemptRow.user_id == user_id,
            AttemptRow.status == IN_PROGRESS,
        ).execution_options(populate_existing=True)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_attempt(row)

    async def add_in_progress(self, attempt: Attempt) -> Attempt:
        stmt = (
            insert(AttemptRow)
            .values(
                id=attempt.id,
                assessment_id=attempt.assessment_id,
                user_id=attempt.user_id,
                status=IN_PROGRESS,
                started_at=attempt.started_at,
                expires_at=attempt.expires_at,
                timed_out=False,
                attempt_no=attempt.attempt_no,
                question_order=[str(q) for q in attempt.question_order],
                option_order_json=json.dumps(
                    {str(q): list(o) for q, o in attempt.option_order.items()}
                ),
            )
            .on_conflict_do_nothing(
                index_elements=["assessment_id", "user_id"],
                index_where=AttemptRow.status == IN_PROGRESS,
            )
        )
        await self._session.execute(stmt)
        stored = await self.get_in_progress(attempt.assessment_id, attempt.user_id)
        if stored is None:
            raise RuntimeError("in-progress attempt vanished after insert")
        return stored

    async def count_submitted(self, assessment_id: UUID, user_id: str) -> int:
        stmt = select(func.count()).where(
            AttemptRow.assessment_id == assessment_id,
            AttemptRow.user_id == user_id,
            AttemptRow.status == SUBMITTED,
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list_submitted(self, assessment_id: UUID) -> list[Attempt]:
        stmt = select(AttemptRow).where(
            AttemptRow.assessment_id == assessment_id,
            AttemptRow.status == SUBMITTED,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def list_expired(
        self, now: int, assessment_id: UUID | None = None
    ) -> list[Attempt]:
        stmt = select(AttemptRow).where(
            AttemptRow.status == IN_PROGRESS,
            AttemptRow.expires_at.is_not(None),
            AttemptRow.expires_at <= now,
        )
        if assessment_id is not None:
            stmt = stmt.where(AttemptRow.assessment_id == assessment_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def compare_and_set_submitted(
        self,
        attempt_id: UUID,
        *,
        submitted_at: int,
        timed_out: bool,
        result: AttemptResult,
    ) -> bool:
        stmt = (
            update(AttemptRow)
            .where(AttemptRow.id == attempt_id, AttemptRow.status == IN_PROGRESS)
            .values(
                status=SUBMITTED,
                submitted_at=submitted_at,
                timed_out=timed_out,
                result_json=json.dumps(result_to_dict(result)),
            )
        )
        outcome = await self._session.execute(stmt)
        return outcome.rowcount == 1


def _row_to_attempt(row: AttemptRow) -> Attempt:
    option_order = {
        UUID(q): tuple(opts)
        for q, opts in json.loads(row.option_order_json or "{}").items()
    }
    return Attempt(
        id=row.id,
        assessment_id=row.assessment_id,
        user_id=row.user_id,
        started_at=row.started_at,
        expires_at=row.expires_at,
        question_order=tuple(UUID(q) for q in row.question_order or ()),
        option_order=option_order,
        status=row.status,
        submitted_at=row.submitted_at,
        timed_out=row.timed_out,
        attempt_no=row.attempt_no,
        result=result_from_dict(json.loads(row.result_json)) if row.result_json else None,
    )
