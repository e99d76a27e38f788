"""Staff views over an assessment: leaderboard and submitted attempts."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from assessment_service.api.attempts import AttemptOut, ResultOut, attempt_out, result_out
from assessment_service.api.dependencies import get_engine, require_any_role
from assessment_service.api.errors import to_http
from assessment_service.models.principal import STAFF_ROLES, Principal
from assessment_service.services.engine import AssessmentEngine
from assessment_service.services.errors import AssessmentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/assessments", tags=["assessments"])


class LeaderboardEntryOut(BaseModel):
    rank: int
    user_id: str
    attempt_id: str
    submitted_at: int
    total_score: float
    percentage: float


class SubmittedAttemptOut(BaseModel):
    user_id: str
    attempt: AttemptOut
    result: ResultOut | None


@router.get("/{assessment_id}/leaderboard", response_model=list[LeaderboardEntryOut])
async def get_leaderboard(
    assessment_id: UUID,
    principal: Annotated[Principal, Depends(require_any_role(STAFF_ROLES))],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
) -> list[LeaderboardEntryOut]:
    """Best submitted attempt per learner, highest percentage first."""
    try:
        entries = await engine.get_leaderboard(assessment_id)
    except AssessmentError as e:
        raise to_http(e) from None

    logger.info(
        "Leaderboard served to user=%s (%d entries)",
        principal.user_id,
        len(entries),
        extra={"assessment_id": str(assessment_id)},
    )
    return [
        LeaderboardEntryOut(
            rank=e.rank,
            user_id=e.user_id,
            attempt_id=str(e.attempt_id),
            submitted_at=e.submitted_at,
            total_score=e.result.total_score,
            percentage=e.result.percentage,
        )
        for e in entries
    ]


@router.get("/{assessment_id}/attempts", response_model=list[SubmittedAttemptOut])
async def list_submitted_attempts(
    assessment_id: UUID,
    _principal: Annotated[Principal, Depends(require_any_role(STAFF_ROLES))],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
) -> list[SubmittedAttemptOut]:
    try:
        attempts = await engine.list_submitted_attempts(assessment_id)
    except AssessmentError as e:
        raise to_http(e) from None

    return [
        SubmittedAttemptOut(
            user_id=a.user_id,
            attempt=attempt_out(a),
            result=result_out(a.result) if a.result else None,
        )
        for a in attempts
    ]
