"""Background sweeper for expired attempts.

RUN:  python -m assessment_service.worker

Deadlines are enforced lazily whenever an attempt is touched, so an
abandoned attempt would otherwise stay in progress (and off the
leaderboard) until its learner came back.  This process closes such
attempts on a timer.  It is safe to run next to the API and to run more
than one copy: submission is a compare-and-set, so each attempt is
scored and frozen exactly once whoever gets there first.

Same image, different command:
  api:    uvicorn assessment_service.main:app --host 0.0.0.0 --port 8000
  worker: python -m assessment_service.worker
"""

from __future__ import annotations

import asyncio
import logging

from assessment_service.core.clock import system_clock
from assessment_service.core.config import SETTINGS
from assessment_service.core.logging import setup_logging
from assessment_service.db.engine import lifespan_db, session_scope
from assessment_service.repos.pg_answer_repo import PgAnswerRepo
from assessment_service.repos.pg_attempt_repo import PgAttemptRepo
from assessment_service.repos.pg_question_bank import PgQuestionBank
from assessment_service.services.cache import cache_service
from assessment_service.services.engine import AssessmentEngine

logger = logging.getLogger("worker")


async def sweep_once(engine: AssessmentEngine) -> int:
    """One pass over every expired attempt; returns how many were submitted."""
    results = await engine.sweep_expired()
    return len(results)


async def run_worker() -> None:
    if not SETTINGS.database_url:
        raise RuntimeError("DATABASE_URL must be set to run the sweeper")

    interval = SETTINGS.sweep_interval_seconds
    logger.info("Worker started: sweeping expired attempts every %ds", interval)

    async with lifespan_db():
        while True:
            try:
                async with session_scope() as session:
                    engine = AssessmentEngine(
                        PgQuestionBank(session),
                        PgAttemptRepo(session),
                        PgAnswerRepo(session),
                        system_clock,
                        cache_service,
                        leaderboard_ttl=SETTINGS.leaderboard_cache_ttl,
                    )
                    submitted = await sweep_once(engine)
                if submitted:
                    logger.info("Sweep pass closed %d attempt(s)", submitted)
            except Exception:
                # A failed pass is retried on the next tick.
                logger.exception("Sweep pass failed")
            await asyncio.sleep(interval)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
