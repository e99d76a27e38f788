"""Starting, resuming and reading attempts."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar
from uuid import UUID, uuid4

from assessment_service.core.clock import Clock
from assessment_service.core.metrics import ATTEMPTS_STARTED
from assessment_service.models.assessment import Assessment, QuestionOption
from assessment_service.models.attempt import Answer, Attempt
from assessment_service.repos.answer_repo import AnswerRepo
from assessment_service.repos.attempt_repo import AttemptRepo
from assessment_service.repos.question_bank import QuestionBank
from assessment_service.services.errors import (
    AssessmentNotOpen,
    MaxAttemptsReached,
    NotFoundError,
)
from assessment_service.services.time_guard import TimeGuard

logger = logging.getLogger(__name__)

T = TypeVar("T")


def seeded_shuffle(items: Sequence[T], seed: str) -> tuple[T, ...]:
    """Permutation of items that depends only on the seed string."""
    shuffled = list(items)
    random.Random(seed).shuffle(shuffled)
    return tuple(shuffled)


@dataclass(frozen=True, slots=True)
class StartResult:
    attempt: Attempt
    resumed: bool


@dataclass(frozen=True, slots=True)
class PaperQuestion:
    """A question as the learner sees it: no correct answer, no explanation."""

    id: UUID
    type: str
    text: str
    marks: float
    options: tuple[QuestionOption, ...]


@dataclass(frozen=True, slots=True)
class AttemptPaper:
    attempt: Attempt
    questions: tuple[PaperQuestion, ...]
    answers: tuple[Answer, ...]
    remaining_seconds: int | None  # None = untimed


class AttemptManager:
    def __init__(
        self,
        question_bank: QuestionBank,
        attempts: AttemptRepo,
        answers: AnswerRepo,
        clock: Clock,
        time_guard: TimeGuard,
    ) -> None:
        self._question_bank = question_bank
        self._attempts = attempts
        self._answers = answers
        self._clock = clock
        self._time_guard = time_guard

    async def get_assessment(self, assessment_id: UUID) -> Assessment:
        assessment = await self._question_bank.get_assessment(assessment_id)
        if assessment is None:
            raise NotFoundError(f"assessment {assessment_id} not found")
        return assessment

    async def start_or_resume(self, assessment_id: UUID, user_id: str) -> StartResult:
        """Return the learner's in-progress attempt, or open a new one.

        An in-progress attempt whose deadline has passed is submitted on
        the spot and does not count as resumable.  New attempts require the
        assessment to be published and inside its time window, and the
        learner to have submitted fewer than max_attempts.
        """
        assessment = await self.get_assessment(assessment_id)
        log_extra = {"assessment_id": str(assessment_id), "user_id": user_id}

        existing = await self._attempts.get_in_progress(assessment_id, user_id)
        if existing is not None:
            existing = await self._time_guard.enforce(existing)
            if not existing.is_submitted:
                ATTEMPTS_STARTED.labels(resumed="true").inc()
                logger.info(
                    "Attempt resumed",
                    extra={**log_extra, "attempt_id": str(existing.id)},
                )
                return StartResult(attempt=existing, resumed=True)

        now = self._clock.now()
        _check_open(assessment, now)

        used = await self._attempts.count_submitted(assessment_id, user_id)
        if used >= assessment.max_attempts:
            logger.warning(
                "Start rejected: %d of %d attempts used",
                used,
                assessment.max_attempts,
                extra=log_extra,
            )
            raise MaxAttemptsReached(
                f"maximum attempts ({assessment.max_attempts}) reached"
            )

        attempt = _new_attempt(assessment, user_id, now, attempt_no=used + 1)
        stored = await self._attempts.add_in_progress(attempt)
        resumed = stored.id != attempt.id

        ATTEMPTS_STARTED.labels(resumed="true" if resumed else "false").inc()
        logger.info(
            "Attempt %s (no=%d, expires_at=%s)",
            "resumed after concurrent start" if resumed else "started",
            stored.attempt_no,
            stored.expires_at,
            extra={**log_extra, "attempt_id": str(stored.id)},
        )
        return StartResult(attempt=stored, resumed=resumed)

    async def find_attempt(self, attempt_id: UUID) -> Attempt:
        """Load an attempt as stored, without deadline enforcement."""
        attempt = await self._attempts.get(attempt_id)
        if attempt is None:
            raise NotFoundError(f"attempt {attempt_id} not found")
        return attempt

    async def get_attempt(self, attempt_id: UUID) -> Attempt:
        return await self._time_guard.enforce(await self.find_attempt(attempt_id))

    async def list_answers(self, attempt_id: UUID) -> list[Answer]:
        await self.find_attempt(attempt_id)
        return await self._answers.list_for_attempt(attempt_id)

    async def get_paper(self, attempt_id: UUID) -> AttemptPaper:
        """Everything a client needs to (re)render an attempt."""
        attempt = await self.get_attempt(attempt_id)
        assessment = await self.get_assessment(attempt.assessment_id)

        questions = []
        for question_id in attempt.question_order:
            question = assessment.question(question_id)
            if question is None:
                continue
            options_by_id = {o.id: o for o in question.options}
            order = attempt.option_order.get(question_id)
            options = (
                tuple(options_by_id[o] for o in order if o in options_by_id)
                if order
                else question.options
            )
            questions.append(
                PaperQuestion(
                    id=question.id,
                    type=question.type,
                    text=question.text,
                    marks=question.marks,
                    options=options,
                )
            )

        remaining: int | None = None
        if attempt.expires_at is not None:
            if attempt.is_submitted:
                remaining = 0
            else:
                remaining = max(0, attempt.expires_at - self._clock.now())

        answers = await self._answers.list_for_attempt(attempt.id)
        return AttemptPaper(
            attempt=attempt,
            questions=tuple(questions),
            answers=tuple(answers),
            remaining_seconds=remaining,
        )

    async def list_submitted(self, assessment_id: UUID) -> list[Attempt]:
        """Teacher view: submitted attempts, best percentage first."""
        await self.get_assessment(assessment_id)
        attempts = await self._attempts.list_submitted(assessment_id)
        return sorted(
            attempts,
            key=lambda a: (
                -(a.result.percentage if a.result else 0.0),
                a.submitted_at or 0,
            ),
        )


def _check_open(assessment: Assessment, now: int) -> None:
    if not assessment.is_published:
        raise AssessmentNotOpen("assessment is not available")
    if assessment.start_time is not None and now < assessment.start_time:
        raise AssessmentNotOpen("assessment has not started yet")
    if assessment.end_time is not None and now > assessment.end_time:
        raise AssessmentNotOpen("assessment deadline has passed")


def _new_attempt(
    assessment: Assessment, user_id: str, now: int, *, attempt_no: int
) -> Attempt:
    attempt_id = uuid4()
    question_ids = [q.id for q in assessment.questions]

    if assessment.shuffle_questions:
        question_order = seeded_shuffle(question_ids, str(attempt_id))
    else:
        question_order = tuple(question_ids)

    option_order: dict[UUID, tuple[str, ...]] = {}
    if assessment.shuffle_options:
        for q in assessment.questions:
            if q.options:
                option_order[q.id] = seeded_shuffle(
                    [o.id for o in q.options], f"{attempt_id}:{q.id}"
                )

    expires_at = (
        now + assessment.duration_minutes * 60
        if assessment.duration_minutes is not None
        else None
    )
    return Attempt.new(
        id=attempt_id,
        assessment_id=assessment.id,
        user_id=user_id,
        started_at=now,
        expires_at=expires_at,
        question_order=question_order,
        option_order=option_order,
        attempt_no=attempt_no,
    )
