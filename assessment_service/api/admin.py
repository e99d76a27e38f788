from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from assessment_service.api.dependencies import get_engine, require_any_role
from assessment_service.models.principal import Principal
from assessment_service.services.engine import AssessmentEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class SweepOut(BaseModel):
    submitted: int
    attempt_ids: list[str]


@router.post("/attempts/sweep", response_model=SweepOut)
async def sweep_expired_attempts(
    principal: Annotated[Principal, Depends(require_any_role({"admin"}))],
    engine: Annotated[AssessmentEngine, Depends(get_engine)],
    assessment_id: UUID | None = None,
) -> SweepOut:
    """Force-submit every in-progress attempt whose deadline has passed.

    The worker does this on a timer; this endpoint runs one pass on demand.
    """
    logger.info("Expired-attempt sweep requested by user=%s", principal.user_id)
    results = await engine.sweep_expired(assessment_id)
    return SweepOut(
        submitted=len(results),
        attempt_ids=[str(r.attempt_id) for r in results],
    )
