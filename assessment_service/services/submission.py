"""The single path by which an attempt becomes SUBMITTED.

Both a learner pressing submit and TimeGuard forcing a timed-out attempt
go through SubmissionService.submit.  The attempt is claimed for the
whole read-score-freeze sequence and the transition itself is the
repository's compare-and-set, so when two submitters race exactly one
scores and the other returns the frozen result unchanged.
"""

from __future__ import annotations

import logging
import time
from uuid import UUID

from assessment_service.core.clock import Clock
from assessment_service.core.metrics import (
    ATTEMPT_SUBMISSIONS,
    SCORING_DURATION,
    SCORING_FAILURES,
)
from assessment_service.models.attempt import Attempt, AttemptResult
from assessment_service.repos.answer_repo import AnswerRepo
from assessment_service.repos.attempt_repo import AttemptBusyError, AttemptRepo
from assessment_service.repos.question_bank import QuestionBank
from assessment_service.services.cache import CacheService, leaderboard_cache_key
from assessment_service.services.errors import (
    AttemptClosed,
    InternalError,
    NotFoundError,
)
from assessment_service.services.scorer import score_attempt

logger = logging.getLogger(__name__)


def is_expired(attempt: Attempt, now: int) -> bool:
    """True when an in-progress attempt has reached its deadline."""
    return (
        not attempt.is_submitted
        and attempt.expires_at is not None
        and now >= attempt.expires_at
    )


class SubmissionService:
    def __init__(
        self,
        question_bank: QuestionBank,
        attempts: AttemptRepo,
        answers: AnswerRepo,
        clock: Clock,
        cache: CacheService,
    ) -> None:
        self._question_bank = question_bank
        self._attempts = attempts
        self._answers = answers
        self._clock = clock
        self._cache = cache

    async def submit(self, attempt_id: UUID, *, timed_out: bool = False) -> AttemptResult:
        """Score and freeze the attempt, or return the already frozen result.

        Answers are read, scored and frozen while the attempt is claimed,
        so a concurrent autosave either lands before scoring or is
        rejected.  A manual submit that arrives after the deadline is
        recorded as a timeout.  Raises InternalError, leaving the attempt
        in progress, if the assessment's question data cannot be scored.
        """
        try:
            async with self._attempts.claim(attempt_id) as attempt:
                if attempt is None:
                    raise NotFoundError(f"attempt {attempt_id} not found")
                if attempt.is_submitted:
                    return _frozen_result(attempt)

                now = self._clock.now()
                timed_out = timed_out or is_expired(attempt, now)
                result = await self._score(attempt)

                won = await self._attempts.compare_and_set_submitted(
                    attempt.id, submitted_at=now, timed_out=timed_out, result=result
                )
                if not won:
                    current = await self._attempts.get(attempt.id)
                    if current is None:
                        raise NotFoundError(f"attempt {attempt_id} not found")
                    logger.info(
                        "Submission lost race; returning frozen result",
                        extra={"attempt_id": str(attempt.id)},
                    )
                    return _frozen_result(current)
        except AttemptBusyError:
            raise AttemptClosed("attempt is being submitted") from None

        ATTEMPT_SUBMISSIONS.labels(trigger="timeout" if timed_out else "manual").inc()
        await self._cache.delete(leaderboard_cache_key(attempt.assessment_id))
        logger.info(
            "Attempt submitted user=%s score=%s/%s timed_out=%s",
            attempt.user_id,
            result.total_score,
            result.max_score,
            timed_out,
            extra={
                "attempt_id": str(attempt.id),
                "assessment_id": str(attempt.assessment_id),
                "user_id": attempt.user_id,
            },
        )
        return result

    async def _score(self, attempt: Attempt) -> AttemptResult:
        assessment = await self._question_bank.get_assessment(attempt.assessment_id)
        if assessment is None:
            raise InternalError(
                f"assessment {attempt.assessment_id} of attempt {attempt.id} is gone"
            )
        saved = await self._answers.list_for_attempt(attempt.id)

        start = time.perf_counter()
        try:
            return score_attempt(
                assessment, attempt.id, {a.question_id: a.value for a in saved}
            )
        except InternalError:
            SCORING_FAILURES.inc()
            logger.exception(
                "Scoring failed; attempt left in progress",
                extra={
                    "attempt_id": str(attempt.id),
                    "assessment_id": str(attempt.assessment_id),
                },
            )
            raise
        finally:
            SCORING_DURATION.observe(time.perf_counter() - start)


def _frozen_result(attempt: Attempt) -> AttemptResult:
    if attempt.result is None:
        raise InternalError(f"attempt {attempt.id} is submitted without a result")
    return attempt.result
