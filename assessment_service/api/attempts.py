"""Learner-facing attempt endpoints.

  POST /v1/assessments/{assessment_id}/attempts   start or resume
  GET  /v1/attempts/{attempt_id}                  paper + saved answers
  PUT  /v1/attempts/{attempt_id}/answers/{qid}    autosave one answer
  POST /v1/attempts/{attempt_id}/submit           submit (idempotent)
  GET  /v1/attempts/{attempt_id}/result           frozen result + review

Attempts are private: anyone but the owner gets a 404, so attempt IDs
cannot be probed.  Staff may read results of any attempt.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from assessment_service.api.dependencies import get_engine, require_user
from assessment_service.api.errors import to_http
from assessment_service.middleware.request_context import attempt_id_var
from assessment_service.models.assessment import RESULTS_MANUAL, Assessment
from assessment_service.models.attempt import (
    Answer,
    AnswerValue,
    Attempt,
    AttemptResult,
    MCQValue,
    MSQValue,
    NATValue,
)
from assessment_service.models.principal import Principal
from assessment_service.models.serialization import (
    answer_value_to_dict,
    correct_answer_to_dict,
)
from assessment_service.services.engine import AssessmentEngine
from assessment_service.services.errors import AssessmentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["attempts"])


# --- Request bodies ---


class MCQAnswerIn(BaseModel):
    type: Literal["MCQ"]
    option_id: str


class MSQAnswerIn(BaseModel):
    type: Literal["MSQ"]
    option_ids: list[str]


class NATAnswerIn(BaseModel):
    type: Literal["NAT"]
    value: float


class SaveAnswerIn(BaseModel):
    answer: Annotated[
        MCQAnswerIn | MSQAnswerIn | NATAnswerIn, Field(discriminator="type")
    ]

    def to_value(self) -> AnswerValue:
        a = self.answer
        if isinstance(a, MCQAnswerIn):
            return MCQValue(option_id=a.option_id)
        if isinstance(a, MSQAnswerIn):
            return MSQValue(option_ids=frozenset(a.option_ids))
        return NATValue(value=a.value)


# --- Responses ---


class AttemptOut(BaseModel):
    id: str
    assessment_id: str
    status: str
    attempt_no: int
    started_at: int
    expires_at: int | None
    submitted_at: int | None
    timed_out: bool


class StartAttemptOut(BaseModel):
    attempt: AttemptOut
    resumed: bool


class OptionOut(BaseModel):
    id: str
    text: str


class QuestionOut(BaseModel):
    id: str
    type: str
    text: str
    marks: float
    options: list[OptionOut]


class AnswerOut(BaseModel):
    question_id: str
    answer: dict
    last_written_at: int


class PaperOut(BaseModel):
    attempt: AttemptOut
    questions: list[QuestionOut]
    answers: list[AnswerOut]
    remaining_seconds: int | None


class QuestionResultOut(BaseModel):
    question_id: str
    marks_awarded: float
    is_correct: bool
    status: str


class ResultOut(BaseModel):
    attempt_id: str
    total_score: float
    max_score: float
    percentage: float
    correct_count: int
    wrong_count: int
    skipped_count: int
    passed: bool | None
    per_question: list[QuestionResultOut]


class QuestionReviewOut(BaseModel):
    question_id: str
    type: str
    text: str
    marks: float
    options: list[OptionOut]
    answer: dict | None
    correct_answer: dict | None
    explanation: str | None
    marks_awarded: float
    status: str


class ResultReviewOut(ResultOut):
    """The frozen result plus each question with its answer key."""

    review: list[QuestionReviewOut]


class SubmitOut(BaseModel):
    attempt: AttemptOut
    # None while results are held back for manual release.
    result: ResultOut | None


def attempt_out(attempt: Attempt) -> AttemptOut:
    return AttemptOut(
        id=str(attempt.id),
        assessment_id=str(attempt.assessment_id),
        status=attempt.status,
        attempt_no=attempt.attempt_no,
        started_at=attempt.started_at,
        expires_at=attempt.expires_at,
        submitted_at=attempt.submitted_at,
        timed_out=attempt.timed_out,
    )


def answer_out(answer: Answer) -> AnswerOut:
    return AnswerOut(
        question_id=str(answer.question_id),
        answer=answer_value_to_dict(answer.value),
        last_written_at=answer.last_written_at,
    )


def result_out(result: AttemptResult) -> ResultOut:
    return ResultOut(
        attempt_id=str(result.attempt_id),
        total_score=result.total_score,
        max_score=result.max_score,
        percentage=result.percentage,
        correct_count=result.correct_count,
        wrong_count=result.wrong_count,
        skipped_count=result.skipped_count,
        passed=result.passed,
        per_question=[
            QuestionResultOut(
                question_id=str(q.question_id),
                marks_awarded=q.marks_awarded,
                is_correct=q.is_correct,
                status=q.status,
            )
            for q in result.per_question
        ],
    )


def review_out(
    assessment: Assessment, result: AttemptResult, answers: list[Answer]
) -> list[QuestionReviewOut]:
    saved = {a.question_id: a.value for a in answers}
    review = []
    for outcome in result.per_question:
        question = assessment.question(outcome.question_id)
        if question is None:
            continue
        value = saved.get(question.id)
        review.append(
            QuestionReviewOut(
                question_id=str(question.id),
                type=question.type,
                text=question.text,
                marks=question.marks,
                options=[OptionOut(id=o.id, text=o.text) for o in question.options],
                answer=answer_value_to_dict(value) if value is not None else None,
                correct_answer=correct_answer_to_dict(question.correct_answer),
                explanation=question.explanation,
                marks_awarded=outcome.marks_awarded,
                status=outcome.status,
            )
        )
    return review


def _results_visible(assessment: Assessment, principal: Principal) -> bool:
    if principal.is_staff():
        return True
    return assessment.show_result_after != RESULTS_MANUAL or assessment.is_closed


async def _load_owned(
    engine: AssessmentEngine,
    attempt_id: UUID,
    principal: Principal,
    *,
    allow_staff: bool = False,
) -> Attempt:
    """Load an attempt the caller may see; 404 for everyone else."""
    attempt_id_var.set(str(attempt_id))
    try:
        attempt = await engine.find_attempt(attempt_id)
    except AssessmentError as e:
        raise to_http(e) from None

    if attempt.user_id != principal.user_id and not (
        allow_staff and principal.is_staff()
    ):
        logger.warning(
            "Attempt access denied for user=%s (owner=%s)",
            principal.user_id,
            attempt.user_id,
        )
        raise HTTPException(status_code=404, detail="attempt not found")
    return attempt


@router.post(
    "/assessments/{assessment_id}/attempts",
    response_model=StartAttemptOut,
    status_code=status.HTTP_201_CREATED,
)
async def start_attempt(
    assessment_id: UUID,
    response: Response,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
) -> StartAttemptOut:
    """Start a new attempt, or hand back the one already in progress.

    201 for a new attempt, 200 when an existing one is resumed.
    """
    try:
        started = await engine.start_attempt(assessment_id, principal.user_id)
    except AssessmentError as e:
        raise to_http(e) from None

    attempt_id_var.set(str(started.attempt.id))
    if started.resumed:
        response.status_code = status.HTTP_200_OK
    return StartAttemptOut(attempt=attempt_out(started.attempt), resumed=started.resumed)


@router.get("/attempts/{attempt_id}", response_model=PaperOut)
async def get_attempt_paper(
    attempt_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
) -> PaperOut:
    await _load_owned(engine, attempt_id, principal)
    try:
        paper = await engine.get_paper(attempt_id)
    except AssessmentError as e:
        raise to_http(e) from None

    return PaperOut(
        attempt=attempt_out(paper.attempt),
        questions=[
            QuestionOut(
                id=str(q.id),
                type=q.type,
                text=q.text,
                marks=q.marks,
                options=[OptionOut(id=o.id, text=o.text) for o in q.options],
            )
            for q in paper.questions
        ],
        answers=[answer_out(a) for a in paper.answers],
        remaining_seconds=paper.remaining_seconds,
    )


@router.put(
    "/attempts/{attempt_id}/answers/{question_id}", response_model=AnswerOut
)
async def save_answer(
    attempt_id: UUID,
    question_id: UUID,
    body: SaveAnswerIn,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
) -> AnswerOut:
    await _load_owned(engine, attempt_id, principal)
    try:
        answer = await engine.save_answer(attempt_id, question_id, body.to_value())
    except AssessmentError as e:
        raise to_http(e) from None
    return answer_out(answer)


@router.post("/attempts/{attempt_id}/submit", response_model=SubmitOut)
async def submit_attempt(
    attempt_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
) -> SubmitOut:
    """Submit the attempt.  Repeating the call returns the same result."""
    await _load_owned(engine, attempt_id, principal)
    try:
        result = await engine.submit_attempt(attempt_id)
        attempt = await engine.find_attempt(attempt_id)
        assessment = await engine.get_assessment(attempt.assessment_id)
    except AssessmentError as e:
        raise to_http(e) from None

    visible = _results_visible(assessment, principal)
    return SubmitOut(
        attempt=attempt_out(attempt),
        result=result_out(result) if visible else None,
    )


@router.get("/attempts/{attempt_id}/result", response_model=ResultReviewOut)
async def get_attempt_result(
    attempt_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
) -> ResultReviewOut:
    """Frozen result plus a review of each question with its answer key."""
    attempt = await _load_owned(engine, attempt_id, principal, allow_staff=True)
    try:
        assessment = await engine.get_assessment(attempt.assessment_id)
        if not _results_visible(assessment, principal):
            logger.info("Result held back until assessment is closed")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="results have not been released",
            )
        result = await engine.get_attempt_result(attempt_id)
        answers = await engine.list_answers(attempt_id)
    except AssessmentError as e:
        raise to_http(e) from None
    return ResultReviewOut(
        **result_out(result).model_dump(),
        review=review_out(assessment, result, answers),
    )
