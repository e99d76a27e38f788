"""Deterministic grading of one attempt.

score_attempt is a pure function: the same assessment and answers always
produce the same AttemptResult.  It never touches storage, so submission
can score first and only then try to freeze the result.

Marking policy per question:

  answered, correct        -> +marks
  answered, wrong          -> -(marks * negative_marking_percent / 100)
  not answered (skipped)   -> 0, never penalised

MSQ is all-or-nothing (exact set equality).  NAT accepts any value within
the closed band [value - tolerance, value + tolerance].  The total is not
clamped, so heavy negative marking can produce a negative score and a
negative percentage.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
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
)
from assessment_service.models.attempt import (
    CORRECT,
    SKIPPED,
    WRONG,
    AnswerValue,
    AttemptResult,
    MCQValue,
    MSQValue,
    NATValue,
    QuestionResult,
)
from assessment_service.services.errors import InternalError

_EXPECTED_ANSWER = {MCQ: MCQAnswer, MSQ: MSQAnswer, NAT: NATAnswer}


def check_question(question: Question) -> None:
    """Raise InternalError if the question cannot be scored as stored."""
    if question.type not in _EXPECTED_ANSWER:
        raise InternalError(f"question {question.id}: unknown type {question.type!r}")
    if not (question.marks > 0 and math.isfinite(question.marks)):
        raise InternalError(f"question {question.id}: marks must be positive")

    correct = question.correct_answer
    if correct is None:
        raise InternalError(f"question {question.id}: missing correct answer")
    if not isinstance(correct, _EXPECTED_ANSWER[question.type]):
        raise InternalError(
            f"question {question.id}: correct answer does not match type "
            f"{question.type}"
        )

    if isinstance(correct, MCQAnswer):
        if correct.option_id not in question.option_ids():
            raise InternalError(
                f"question {question.id}: correct option "
                f"{correct.option_id!r} is not an option"
            )
    elif isinstance(correct, MSQAnswer):
        if not correct.option_ids:
            raise InternalError(f"question {question.id}: empty correct option set")
        unknown = correct.option_ids - question.option_ids()
        if unknown:
            raise InternalError(
                f"question {question.id}: correct options {sorted(unknown)} "
                "are not options"
            )
    elif isinstance(correct, NATAnswer):
        if not math.isfinite(correct.value):
            raise InternalError(f"question {question.id}: correct value not finite")
        if not (correct.tolerance >= 0 and math.isfinite(correct.tolerance)):
            raise InternalError(f"question {question.id}: tolerance must be >= 0")


def is_correct(question: Question, value: AnswerValue) -> bool:
    """Compare one answer against the question's correct answer.

    Assumes check_question has passed.  A stored value of the wrong
    variant is a data fault, not a wrong answer.
    """
    correct = question.correct_answer
    if isinstance(correct, MCQAnswer) and isinstance(value, MCQValue):
        return value.option_id == correct.option_id
    if isinstance(correct, MSQAnswer) and isinstance(value, MSQValue):
        return value.option_ids == correct.option_ids
    if isinstance(correct, NATAnswer) and isinstance(value, NATValue):
        return abs(value.value - correct.value) <= correct.tolerance
    raise InternalError(
        f"question {question.id}: stored answer {type(value).__name__} "
        f"cannot be scored against a {question.type} question"
    )


def score_attempt(
    assessment: Assessment,
    attempt_id: UUID,
    answers: Mapping[UUID, AnswerValue],
) -> AttemptResult:
    """Grade every question of the assessment against the saved answers.

    Raises InternalError before producing anything if any question is
    malformed; a partially scored result is never returned.
    """
    for question in assessment.questions:
        check_question(question)

    penalty_rate = assessment.negative_marking_percent / 100
    per_question: list[QuestionResult] = []
    total_score = 0.0
    max_score = 0.0
    correct_count = wrong_count = skipped_count = 0

    for question in assessment.questions:
        max_score += question.marks
        value = answers.get(question.id)

        if value is None:
            skipped_count += 1
            per_question.append(
                QuestionResult(
                    question_id=question.id,
                    marks_awarded=0.0,
                    is_correct=False,
                    status=SKIPPED,
                )
            )
            continue

        if is_correct(question, value):
            correct_count += 1
            awarded = float(question.marks)
            status = CORRECT
        else:
            wrong_count += 1
            penalty = question.marks * penalty_rate
            awarded = -penalty if penalty else 0.0
            status = WRONG

        total_score += awarded
        per_question.append(
            QuestionResult(
                question_id=question.id,
                marks_awarded=awarded,
                is_correct=status == CORRECT,
                status=status,
            )
        )

    percentage = 100 * total_score / max_score if max_score else 0.0
    passed = (
        total_score >= assessment.passing_marks
        if assessment.passing_marks is not None
        else None
    )

    return AttemptResult(
        attempt_id=attempt_id,
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        correct_count=correct_count,
        wrong_count=wrong_count,
        skipped_count=skipped_count,
        per_question=tuple(per_question),
        passed=passed,
    )
