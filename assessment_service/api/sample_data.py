from __future__ import annotations

from uuid import UUID

from assessment_service.models.assessment import (
    MCQ,
    MSQ,
    NAT,
    Assessment,
    MCQAnswer,
    MSQAnswer,
    NATAnswer,
    Question,
    QuestionOption,
)
from assessment_service.repos.question_bank import InMemoryQuestionBank

SAMPLE_ASSESSMENT_ID = UUID("00000000-0000-0000-0000-000000000001")


def sample_assessment() -> Assessment:
    """A short timed quiz covering all three question types."""
    questions = (
        Question(
            id=UUID("00000000-0000-0000-0000-000000000101"),
            type=MCQ,
            text="Which HTTP status means the resource is gone for good?",
            marks=2,
            correct_answer=MCQAnswer(option_id="c"),
            options=(
                QuestionOption(id="a", text="404"),
                QuestionOption(id="b", text="409"),
                QuestionOption(id="c", text="410"),
                QuestionOption(id="d", text="422"),
            ),
            position=0,
        ),
        Question(
            id=UUID("00000000-0000-0000-0000-000000000102"),
            type=MSQ,
            text="Which of these are prime?",
            marks=3,
            correct_answer=MSQAnswer(option_ids=frozenset({"a", "c"})),
            options=(
                QuestionOption(id="a", text="2"),
                QuestionOption(id="b", text="9"),
                QuestionOption(id="c", text="11"),
            ),
            position=1,
        ),
        Question(
            id=UUID("00000000-0000-0000-0000-000000000103"),
            type=NAT,
            text="What is 22 / 7, to two decimal places?",
            marks=1,
            correct_answer=NATAnswer(value=3.14, tolerance=0.005),
            position=2,
        ),
    )
    return Assessment(
        id=SAMPLE_ASSESSMENT_ID,
        title="Sample quiz",
        questions=questions,
        duration_minutes=10,
        passing_marks=3,
        max_attempts=3,
        negative_marking_percent=25.0,
        shuffle_options=True,
    )


def seed_sample_assessment(bank: InMemoryQuestionBank) -> None:
    """Seed the sample quiz for local development."""
    if SAMPLE_ASSESSMENT_ID not in bank:
        bank.add(sample_assessment())
