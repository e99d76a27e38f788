"""Ranked view over submitted attempts.

Nothing is stored: the ranking is derived from terminal attempts on read
and kept in the read-through cache for a short TTL.  A just-submitted
attempt can be missing for that long, which is acceptable for a
leaderboard.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from uuid import UUID

from assessment_service.core.metrics import CACHE_OPERATIONS
from assessment_service.models.attempt import Attempt, LeaderboardEntry
from assessment_service.models.serialization import (
    leaderboard_entry_from_dict,
    leaderboard_entry_to_dict,
)
from assessment_service.repos.attempt_repo import AttemptRepo
from assessment_service.services.cache import CacheService, leaderboard_cache_key

logger = logging.getLogger(__name__)


def _rank_key(attempt: Attempt) -> tuple[float, int, str]:
    # Higher percentage first, then earlier submission; the id only makes
    # identical timestamps deterministic.
    percentage = attempt.result.percentage if attempt.result else 0.0
    return (-percentage, attempt.submitted_at or 0, str(attempt.id))


def rank_attempts(attempts: Iterable[Attempt]) -> list[LeaderboardEntry]:
    """Best submitted attempt per user, ranked 1..N."""
    best: dict[str, Attempt] = {}
    for attempt in attempts:
        if not attempt.is_submitted or attempt.result is None:
            continue
        current = best.get(attempt.user_id)
        if current is None or _rank_key(attempt) < _rank_key(current):
            best[attempt.user_id] = attempt

    ordered = sorted(best.values(), key=_rank_key)
    return [
        LeaderboardEntry(
            rank=i,
            user_id=a.user_id,
            attempt_id=a.id,
            submitted_at=a.submitted_at or 0,
            result=a.result,  # type: ignore[arg-type]
        )
        for i, a in enumerate(ordered, start=1)
    ]


class LeaderboardAggregator:
    def __init__(
        self, attempts: AttemptRepo, cache: CacheService, ttl_seconds: int
    ) -> None:
        self._attempts = attempts
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    async def get_leaderboard(self, assessment_id: UUID) -> list[LeaderboardEntry]:
        key = leaderboard_cache_key(assessment_id)

        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return [leaderboard_entry_from_dict(e) for e in json.loads(cached)]

        CACHE_OPERATIONS.labels(operation="miss").inc()
        entries = rank_attempts(await self._attempts.list_submitted(assessment_id))
        await self._cache.set(
            key,
            json.dumps([leaderboard_entry_to_dict(e) for e in entries]),
            self._ttl_seconds,
        )
        logger.debug(
            "Leaderboard computed with %d entries",
            len(entries),
            extra={"assessment_id": str(assessment_id)},
        )
        return entries
