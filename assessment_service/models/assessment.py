from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

MCQ = "MCQ"
MSQ = "MSQ"
NAT = "NAT"

RESULTS_ON_SUBMIT = "SUBMIT"
RESULTS_MANUAL = "MANUAL"


@dataclass(frozen=True, slots=True)
class QuestionOption:
    id: str
    text: str


# --- Correct answers: one variant per question type ---


@dataclass(frozen=True, slots=True)
class MCQAnswer:
    option_id: str


@dataclass(frozen=True, slots=True)
class MSQAnswer:
    option_ids: frozenset[str]


@dataclass(frozen=True, slots=True)
class NATAnswer:
    value: float
    tolerance: float = 0.0


CorrectAnswer = MCQAnswer | MSQAnswer | NATAnswer


@dataclass(frozen=True, slots=True)
class Question:
    id: UUID
    type: str  # MCQ|MSQ|NAT
    text: str
    marks: float
    correct_answer: CorrectAnswer | None
    options: tuple[QuestionOption, ...] = ()
    explanation: str | None = None
    position: int = 0

    @staticmethod
    def new(
        *,
        type: str,
        text: str,
        correct_answer: CorrectAnswer | None,
        marks: float = 1,
        options: tuple[QuestionOption, ...] = (),
        explanation: str | None = None,
        position: int = 0,
    ) -> Question:
        return Question(
            id=uuid4(),
            type=type,
            text=text,
            marks=marks,
            correct_answer=correct_answer,
            options=options,
            explanation=explanation,
            position=position,
        )

    def option_ids(self) -> frozenset[str]:
        return frozenset(o.id for o in self.options)


@dataclass(frozen=True, slots=True)
class Assessment:
    """A published quiz/test and its ordered questions.

    Treated as immutable once any attempt references it; authoring lives
    outside this service.
    """

    id: UUID
    title: str
    questions: tuple[Question, ...] = ()
    type: str = "quiz"  # quiz|test|exam
    status: str = "published"  # draft|published|closed
    duration_minutes: int | None = None
    start_time: int | None = None
    end_time: int | None = None
    passing_marks: float | None = None
    max_attempts: int = 1
    negative_marking_percent: float = 0.0
    shuffle_questions: bool = False
    shuffle_options: bool = False
    show_result_after: str = RESULTS_ON_SUBMIT  # SUBMIT|MANUAL

    @staticmethod
    def new(
        *,
        title: str,
        questions: tuple[Question, ...] = (),
        type: str = "quiz",
        status: str = "published",
        duration_minutes: int | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        passing_marks: float | None = None,
        max_attempts: int = 1,
        negative_marking_percent: float = 0.0,
        shuffle_questions: bool = False,
        shuffle_options: bool = False,
        show_result_after: str = RESULTS_ON_SUBMIT,
    ) -> Assessment:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if negative_marking_percent < 0:
            raise ValueError("negative_marking_percent must be >= 0")
        return Assessment(
            id=uuid4(),
            title=title,
            questions=questions,
            type=type,
            status=status,
            duration_minutes=duration_minutes,
            start_time=start_time,
            end_time=end_time,
            passing_marks=passing_marks,
            max_attempts=max_attempts,
            negative_marking_percent=negative_marking_percent,
            shuffle_questions=shuffle_questions,
            shuffle_options=shuffle_options,
            show_result_after=show_result_after,
        )

    def question(self, question_id: UUID) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    @property
    def is_published(self) -> bool:
        return self.status == "published"

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"
