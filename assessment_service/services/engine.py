"""AssessmentEngine: the operations the rest of the service calls.

Wires the components over one set of collaborators (question bank,
repositories, clock, cache).  Construct one per unit of work; nothing in
here holds state beyond those collaborators.
"""

from __future__ import annotations

from uuid import UUID

from assessment_service.core.clock import Clock
from assessment_service.models.assessment import Assessment
from assessment_service.models.attempt import (
    Answer,
    AnswerValue,
    Attempt,
    AttemptResult,
    LeaderboardEntry,
)
from assessment_service.repos.answer_repo import AnswerRepo
from assessment_service.repos.attempt_repo import AttemptRepo
from assessment_service.repos.question_bank import QuestionBank
from assessment_service.services.answer_store import AnswerStore
from assessment_service.services.attempt_manager import (
    AttemptManager,
    AttemptPaper,
    StartResult,
)
from assessment_service.services.cache import CacheService
from assessment_service.services.errors import NotSubmittedError
from assessment_service.services.leaderboard import LeaderboardAggregator
from assessment_service.services.submission import SubmissionService
from assessment_service.services.time_guard import TimeGuard


class AssessmentEngine:
    def __init__(
        self,
        question_bank: QuestionBank,
        attempts: AttemptRepo,
        answers: AnswerRepo,
        clock: Clock,
        cache: CacheService,
        *,
        leaderboard_ttl: int = 30,
    ) -> None:
        self.clock = clock
        self.submissions = SubmissionService(
            question_bank, attempts, answers, clock, cache
        )
        self.time_guard = TimeGuard(clock, attempts, self.submissions)
        self.attempts = AttemptManager(
            question_bank, attempts, answers, clock, self.time_guard
        )
        self.answers = AnswerStore(
            question_bank, attempts, answers, clock, self.time_guard
        )
        self.leaderboard = LeaderboardAggregator(attempts, cache, leaderboard_ttl)

    async def get_assessment(self, assessment_id: UUID) -> Assessment:
        return await self.attempts.get_assessment(assessment_id)

    async def start_attempt(self, assessment_id: UUID, user_id: str) -> StartResult:
        return await self.attempts.start_or_resume(assessment_id, user_id)

    async def find_attempt(self, attempt_id: UUID) -> Attempt:
        return await self.attempts.find_attempt(attempt_id)

    async def get_attempt(self, attempt_id: UUID) -> Attempt:
        return await self.attempts.get_attempt(attempt_id)

    async def get_paper(self, attempt_id: UUID) -> AttemptPaper:
        return await self.attempts.get_paper(attempt_id)

    async def save_answer(
        self, attempt_id: UUID, question_id: UUID, value: AnswerValue
    ) -> Answer:
        return await self.answers.save_answer(attempt_id, question_id, value)

    async def list_answers(self, attempt_id: UUID) -> list[Answer]:
        return await self.attempts.list_answers(attempt_id)

    async def submit_attempt(self, attempt_id: UUID) -> AttemptResult:
        return await self.submissions.submit(attempt_id)

    async def get_attempt_result(self, attempt_id: UUID) -> AttemptResult:
        attempt = await self.get_attempt(attempt_id)
        if attempt.result is None:
            raise NotSubmittedError("attempt has not been submitted")
        return attempt.result

    async def list_submitted_attempts(self, assessment_id: UUID) -> list[Attempt]:
        return await self.attempts.list_submitted(assessment_id)

    async def get_leaderboard(self, assessment_id: UUID) -> list[LeaderboardEntry]:
        await self.get_assessment(assessment_id)
        return await self.leaderboard.get_leaderboard(assessment_id)

    async def sweep_expired(
        self, assessment_id: UUID | None = None
    ) -> list[AttemptResult]:
        return await self.time_guard.sweep(assessment_id)
