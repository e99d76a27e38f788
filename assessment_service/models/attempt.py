from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4

IN_PROGRESS = "in_progress"
SUBMITTED = "submitted"

CORRECT = "correct"
WRONG = "wrong"
SKIPPED = "skipped"


# --- Learner answers: one variant per question type ---


@dataclass(frozen=True, slots=True)
class MCQValue:
    option_id: str


@dataclass(frozen=True, slots=True)
class MSQValue:
    option_ids: frozenset[str]


@dataclass(frozen=True, slots=True)
class NATValue:
    value: float


AnswerValue = MCQValue | MSQValue | NATValue


@dataclass(frozen=True, slots=True)
class Answer:
    """Last saved answer for one question of one attempt."""

    attempt_id: UUID
    question_id: UUID
    value: AnswerValue
    last_written_at: int


@dataclass(frozen=True, slots=True)
class QuestionResult:
    question_id: UUID
    marks_awarded: float
    is_correct: bool
    status: str  # correct|wrong|skipped


@dataclass(frozen=True, slots=True)
class AttemptResult:
    attempt_id: UUID
    total_score: float
    max_score: float
    percentage: float
    correct_count: int
    wrong_count: int
    skipped_count: int
    per_question: tuple[QuestionResult, ...] = ()
    passed: bool | None = None


@dataclass(frozen=True, slots=True)
class Attempt:
    """One learner's pass at an assessment.

    question_order and option_order are fixed at creation and never
    regenerated, so a resumed attempt shows the same paper.  Once status
    is SUBMITTED the record is terminal and `result` is frozen.
    """

    id: UUID
    assessment_id: UUID
    user_id: str
    started_at: int
    expires_at: int | None  # None = untimed
    question_order: tuple[UUID, ...] = ()
    option_order: dict[UUID, tuple[str, ...]] = field(default_factory=dict)
    status: str = IN_PROGRESS  # in_progress|submitted
    submitted_at: int | None = None
    timed_out: bool = False
    attempt_no: int = 1
    result: AttemptResult | None = None

    @staticmethod
    def new(
        *,
        assessment_id: UUID,
        user_id: str,
        started_at: int,
        expires_at: int | None,
        question_order: tuple[UUID, ...],
        option_order: dict[UUID, tuple[str, ...]] | None = None,
        attempt_no: int = 1,
        id: UUID | None = None,
    ) -> Attempt:
        return Attempt(
            id=id or uuid4(),
            assessment_id=assessment_id,
            user_id=user_id,
            started_at=started_at,
            expires_at=expires_at,
            question_order=question_order,
            option_order=option_order or {},
            attempt_no=attempt_no,
        )

    @property
    def is_submitted(self) -> bool:
        return self.status == SUBMITTED


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user_id: str
    attempt_id: UUID
    submitted_at: int
    result: AttemptResult
