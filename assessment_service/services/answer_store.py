"""Autosave of individual answers during an attempt.

Writes are per (attempt, question) upserts made while the attempt is
claimed, the same claim submission takes.  Different questions never
interact; for the same question the write that reaches the store last
wins, whatever order the client sent them in.
"""

from __future__ import annotations

import logging
import math
from typing import NoReturn
from uuid import UUID

from assessment_service.core.clock import Clock
from assessment_service.core.metrics import ANSWERS_SAVED
from assessment_service.models.assessment import MCQ, MSQ, NAT, Question
from assessment_service.models.attempt import (
    Answer,
    AnswerValue,
    Attempt,
    MCQValue,
    MSQValue,
    NATValue,
)
from assessment_service.repos.answer_repo import AnswerRepo
from assessment_service.repos.attempt_repo import AttemptBusyError, AttemptRepo
from assessment_service.repos.question_bank import QuestionBank
from assessment_service.services.errors import (
    AttemptClosed,
    AttemptExpired,
    InternalError,
    NotFoundError,
    ValidationError,
)
from assessment_service.services.time_guard import TimeGuard

logger = logging.getLogger(__name__)

_VALUE_TYPES = {MCQ: MCQValue, MSQ: MSQValue, NAT: NATValue}


def validate_value(question: Question, value: AnswerValue) -> None:
    """Raise ValidationError unless value is a legal answer to question."""
    expected = _VALUE_TYPES.get(question.type)
    if expected is None or not isinstance(value, expected):
        raise ValidationError(
            f"{type(value).__name__} is not a valid answer to a "
            f"{question.type} question"
        )

    if isinstance(value, MCQValue):
        if value.option_id not in question.option_ids():
            raise ValidationError(f"unknown option {value.option_id!r}")
    elif isinstance(value, MSQValue):
        if not value.option_ids:
            raise ValidationError("select at least one option")
        unknown = value.option_ids - question.option_ids()
        if unknown:
            raise ValidationError(f"unknown options {sorted(unknown)}")
    elif isinstance(value, NATValue):
        if isinstance(value.value, bool) or not isinstance(value.value, (int, float)):
            raise ValidationError("numeric answer required")
        if not math.isfinite(value.value):
            raise ValidationError("numeric answer must be finite")


class AnswerStore:
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

    async def save_answer(
        self, attempt_id: UUID, question_id: UUID, value: AnswerValue
    ) -> Answer:
        """Persist one answer.

        Raises AttemptClosed once the attempt is submitted, or while a
        submission of it is underway.  If the deadline has passed the
        attempt is force-submitted first and AttemptExpired is raised; the
        answer is not stored.
        """
        attempt = await self._attempts.get(attempt_id)
        if attempt is None:
            raise NotFoundError(f"attempt {attempt_id} not found")
        log_extra = {"attempt_id": str(attempt_id), "user_id": attempt.user_id}

        if attempt.is_submitted:
            logger.warning("Autosave rejected: attempt closed", extra=log_extra)
            raise AttemptClosed("attempt already submitted")
        if self._time_guard.is_expired(attempt):
            await self._expire(attempt, log_extra)

        assessment = await self._question_bank.get_assessment(attempt.assessment_id)
        question = assessment.question(question_id) if assessment else None
        if question is None:
            raise NotFoundError(f"question {question_id} is not part of this attempt")

        validate_value(question, value)

        answer = Answer(
            attempt_id=attempt_id,
            question_id=question_id,
            value=value,
            last_written_at=self._clock.now(),
        )
        try:
            async with self._attempts.claim(attempt_id) as current:
                # The attempt may have been submitted since it was read above.
                if current is None or current.is_submitted:
                    logger.warning("Autosave rejected: attempt closed", extra=log_extra)
                    raise AttemptClosed("attempt already submitted")
                expired = self._time_guard.is_expired(current)
                if not expired:
                    await self._answers.upsert(answer)
        except AttemptBusyError:
            logger.warning("Autosave rejected: submission underway", extra=log_extra)
            raise AttemptClosed("attempt is being submitted") from None
        if expired:
            await self._expire(current, log_extra)

        ANSWERS_SAVED.labels(question_type=question.type).inc()
        logger.debug("Answer saved question=%s", question_id, extra=log_extra)
        return answer

    async def _expire(self, attempt: Attempt, log_extra: dict[str, str]) -> NoReturn:
        logger.warning("Autosave rejected: deadline passed", extra=log_extra)
        try:
            await self._time_guard.enforce(attempt)
        except InternalError as e:
            raise AttemptExpired("attempt time is over") from e
        raise AttemptExpired("attempt time is over")
