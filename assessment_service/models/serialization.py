"""Plain-dict codecs for the tagged answer variants and frozen results.

Used wherever a model crosses a text boundary: JSON columns in Postgres,
the leaderboard cache, and API payloads.  Each variant is written with an
explicit "type" tag so decoding never has to guess a shape.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from assessment_service.models.assessment import (
    MCQ,
    MSQ,
    NAT,
    CorrectAnswer,
    MCQAnswer,
    MSQAnswer,
    NATAnswer,
)
from assessment_service.models.attempt import (
    AnswerValue,
    AttemptResult,
    LeaderboardEntry,
    MCQValue,
    MSQValue,
    NATValue,
    QuestionResult,
)


def answer_value_to_dict(value: AnswerValue) -> dict[str, Any]:
    if isinstance(value, MCQValue):
        return {"type": MCQ, "option_id": value.option_id}
    if isinstance(value, MSQValue):
        return {"type": MSQ, "option_ids": sorted(value.option_ids)}
    if isinstance(value, NATValue):
        return {"type": NAT, "value": value.value}
    raise TypeError(f"unsupported answer value {value!r}")


def answer_value_from_dict(data: dict[str, Any]) -> AnswerValue:
    kind = data.get("type")
    if kind == MCQ:
        return MCQValue(option_id=str(data["option_id"]))
    if kind == MSQ:
        return MSQValue(option_ids=frozenset(str(o) for o in data["option_ids"]))
    if kind == NAT:
        return NATValue(value=float(data["value"]))
    raise ValueError(f"unknown answer type {kind!r}")


def correct_answer_to_dict(answer: CorrectAnswer | None) -> dict[str, Any] | None:
    if answer is None:
        return None
    if isinstance(answer, MCQAnswer):
        return {"type": MCQ, "option_id": answer.option_id}
    if isinstance(answer, MSQAnswer):
        return {"type": MSQ, "option_ids": sorted(answer.option_ids)}
    if isinstance(answer, NATAnswer):
        return {"type": NAT, "value": answer.value, "tolerance": answer.tolerance}
    raise TypeError(f"unsupported correct answer {answer!r}")


def correct_answer_from_dict(data: dict[str, Any] | None) -> CorrectAnswer | None:
    """Decode a stored correct answer.

    Returns None for a missing answer or an unknown tag; the scorer
    reports those as malformed question data instead of guessing.
    """
    if not data:
        return None
    kind = data.get("type")
    if kind == MCQ:
        return MCQAnswer(option_id=str(data["option_id"]))
    if kind == MSQ:
        return MSQAnswer(option_ids=frozenset(str(o) for o in data["option_ids"]))
    if kind == NAT:
        return NATAnswer(
            value=float(data["value"]), tolerance=float(data.get("tolerance", 0.0))
        )
    return None


def result_to_dict(result: AttemptResult) -> dict[str, Any]:
    return {
        "attempt_id": str(result.attempt_id),
        "total_score": result.total_score,
        "max_score": result.max_score,
        "percentage": result.percentage,
        "correct_count": result.correct_count,
        "wrong_count": result.wrong_count,
        "skipped_count": result.skipped_count,
        "passed": result.passed,
        "per_question": [
            {
                "question_id": str(q.question_id),
                "marks_awarded": q.marks_awarded,
                "is_correct": q.is_correct,
                "status": q.status,
            }
            for q in result.per_question
        ],
    }


def result_from_dict(data: dict[str, Any]) -> AttemptResult:
    return AttemptResult(
        attempt_id=UUID(data["attempt_id"]),
        total_score=data["total_score"],
        max_score=data["max_score"],
        percentage=data["percentage"],
        correct_count=data["correct_count"],
        wrong_count=data["wrong_count"],
        skipped_count=data["skipped_count"],
        passed=data.get("passed"),
        per_question=tuple(
            QuestionResult(
                question_id=UUID(q["question_id"]),
                marks_awarded=q["marks_awarded"],
                is_correct=q["is_correct"],
                status=q["status"],
            )
            for q in data.get("per_question", [])
        ),
    )


def leaderboard_entry_to_dict(entry: LeaderboardEntry) -> dict[str, Any]:
    return {
        "rank": entry.rank,
        "user_id": entry.user_id,
        "attempt_id": str(entry.attempt_id),
        "submitted_at": entry.submitted_at,
        "result": result_to_dict(entry.result),
    }


def leaderboard_entry_from_dict(data: dict[str, Any]) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=data["rank"],
        user_id=data["user_id"],
        attempt_id=UUID(data["attempt_id"]),
        submitted_at=data["submitted_at"],
        result=result_from_dict(data["result"]),
    )
