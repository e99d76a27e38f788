"""Lazy deadline enforcement.

There is no countdown thread.  Expiry is a predicate over the stored
expires_at and the injected clock, checked whenever an attempt is read
or acted on.  An expired attempt found this way is pushed through the
normal submission path with timed_out=True, so the outcome depends only
on server state, not on whether the learner's client is still connected.
"""

from __future__ import annotations

import logging
from uuid import UUID

from assessment_service.core.clock import Clock
from assessment_service.models.attempt import Attempt, AttemptResult
from assessment_service.repos.attempt_repo import AttemptRepo
from assessment_service.services.errors import InternalError, NotFoundError
from assessment_service.services.submission import SubmissionService, is_expired

logger = logging.getLogger(__name__)


class TimeGuard:
    def __init__(
        self, clock: Clock, attempts: AttemptRepo, submissions: SubmissionService
    ) -> None:
        self._clock = clock
        self._attempts = attempts
        self._submissions = submissions

    def is_expired(self, attempt: Attempt) -> bool:
        return is_expired(attempt, self._clock.now())

    async def enforce(self, attempt: Attempt) -> Attempt:
        """Return the attempt, force-submitting it first if its time is up."""
        if not self.is_expired(attempt):
            return attempt

        logger.info(
            "Deadline passed; forcing submission",
            extra={"attempt_id": str(attempt.id), "user_id": attempt.user_id},
        )
        await self._submissions.submit(attempt.id, timed_out=True)
        current = await self._attempts.get(attempt.id)
        if current is None:
            raise NotFoundError(f"attempt {attempt.id} not found")
        return current

    async def sweep(self, assessment_id: UUID | None = None) -> list[AttemptResult]:
        """Force-submit every expired in-progress attempt.

        An attempt whose questions cannot be scored is skipped (submit has
        already logged it) so one bad assessment does not block the rest.
        """
        expired = await self._attempts.list_expired(self._clock.now(), assessment_id)
        results: list[AttemptResult] = []
        failed = 0
        for attempt in expired:
            try:
                results.append(
                    await self._submissions.submit(attempt.id, timed_out=True)
                )
            except InternalError:
                failed += 1

        if expired:
            logger.info(
                "Sweep submitted %d expired attempt(s), %d failed",
                len(results),
                failed,
            )
        return results
