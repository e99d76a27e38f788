from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from assessment_service.core.clock import Clock, system_clock
from assessment_service.core.config import SETTINGS
from assessment_service.db.engine import async_session_factory
from assessment_service.models.principal import Principal
from assessment_service.repos.answer_repo import InMemoryAnswerRepo
from assessment_service.repos.attempt_repo import InMemoryAttemptRepo
from assessment_service.repos.pg_answer_repo import PgAnswerRepo
from assessment_service.repos.pg_attempt_repo import PgAttemptRepo
from assessment_service.repos.pg_question_bank import PgQuestionBank
from assessment_service.repos.question_bank import InMemoryQuestionBank
from assessment_service.services import token_service
from assessment_service.services.cache import cache_service
from assessment_service.services.engine import AssessmentEngine

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# --- In-memory collaborators, used when DATABASE_URL is not set ---
question_bank = InMemoryQuestionBank()
attempt_repo = InMemoryAttemptRepo()
answer_repo = InMemoryAnswerRepo()


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller's Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    return Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )


def require_any_role(roles: set[str] | frozenset[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"admin", "instructor"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


def get_clock() -> Clock:
    """Overridden in tests with a controllable clock."""
    return system_clock


async def get_engine(
    clock: Annotated[Clock, Depends(get_clock)],
) -> AsyncGenerator[AssessmentEngine, None]:
    """Yield an engine bound to this request's unit of work.

    With a database, client errors (4xx) still commit: a forced
    submission performed on the way to a 410 must persist.
    """
    if async_session_factory is None:
        yield AssessmentEngine(
            question_bank,
            attempt_repo,
            answer_repo,
            clock,
            cache_service,
            leaderboard_ttl=SETTINGS.leaderboard_cache_ttl,
        )
        return

    async with async_session_factory() as session:
        engine = AssessmentEngine(
            PgQuestionBank(session),
            PgAttemptRepo(session),
            PgAnswerRepo(session),
            clock,
            cache_service,
            leaderboard_ttl=SETTINGS.leaderboard_cache_ttl,
        )
        try:
            yield engine
        except HTTPException as e:
            if e.status_code < 500:
                await session.commit()
            else:
                await session.rollback()
            raise
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()
