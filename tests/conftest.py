from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine, Iterator
from pathlib import Path
from typing import Any, TypeVar
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import assessment_service` works.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from assessment_service.api.dependencies import (  # noqa: E402
    answer_repo,
    attempt_repo,
    get_clock,
    question_bank,
)
from assessment_service.main import app  # noqa: E402
from assessment_service.models.assessment import (  # noqa: E402
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
from assessment_service.repos.answer_repo import InMemoryAnswerRepo  # noqa: E402
from assessment_service.repos.attempt_repo import InMemoryAttemptRepo  # noqa: E402
from assessment_service.repos.question_bank import InMemoryQuestionBank  # noqa: E402
from assessment_service.services import token_service  # noqa: E402
from assessment_service.services.cache import (  # noqa: E402
    InMemoryCacheService,
    cache_service,
)
from assessment_service.services.engine import AssessmentEngine  # noqa: E402

T = TypeVar("T")

T0 = 1_700_000_000


class FakeClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, now: int = T0) -> None:
        self._now = now

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> None:
        self._now += seconds

    def set(self, now: int) -> None:
        self._now = now


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear the shared in-memory repositories between tests."""
    question_bank.clear()
    attempt_repo.clear()
    answer_repo.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def clock() -> Iterator[FakeClock]:
    """A FakeClock wired into the API in place of the system clock."""
    fake = FakeClock()
    app.dependency_overrides[get_clock] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_clock, None)


@pytest.fixture
def client(clock: FakeClock) -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Engine wired to fresh in-memory collaborators (service-level tests)
# ---------------------------------------------------------------------------


class EngineHarness:
    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.bank = InMemoryQuestionBank()
        self.attempts = InMemoryAttemptRepo()
        self.answers = InMemoryAnswerRepo()
        self.cache = InMemoryCacheService()
        self.engine = AssessmentEngine(
            self.bank, self.attempts, self.answers, clock, self.cache
        )


@pytest.fixture
def harness() -> EngineHarness:
    return EngineHarness(FakeClock())


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    return mint_token()


@pytest.fixture
def instructor_token() -> str:
    return mint_token(username="test-instructor", roles=["instructor"])


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Question helpers
# ---------------------------------------------------------------------------


def options(*ids: str) -> tuple[QuestionOption, ...]:
    return tuple(QuestionOption(id=o, text=f"Option {o}") for o in ids)


def mcq(correct: str = "A", marks: float = 1, opts: str = "ABCD") -> Question:
    return Question.new(
        type=MCQ,
        text="Pick one",
        marks=marks,
        correct_answer=MCQAnswer(option_id=correct),
        options=options(*opts),
    )


def msq(correct: set[str], marks: float = 1, opts: str = "ABCD") -> Question:
    return Question.new(
        type=MSQ,
        text="Pick all that apply",
        marks=marks,
        correct_answer=MSQAnswer(option_ids=frozenset(correct)),
        options=options(*opts),
    )


def nat(value: float, tolerance: float = 0.0, marks: float = 1) -> Question:
    return Question.new(
        type=NAT,
        text="Enter a number",
        marks=marks,
        correct_answer=NATAnswer(value=value, tolerance=tolerance),
    )


def seed_assessment(
    bank: InMemoryQuestionBank | None = None, **kwargs: Any
) -> Assessment:
    """Build an assessment and add it to the bank (the API's by default)."""
    kwargs.setdefault("title", "Quiz")
    kwargs.setdefault("questions", (mcq(), mcq(correct="B")))
    assessment = Assessment.new(**kwargs)
    (bank if bank is not None else question_bank).add(assessment)
    return assessment


def question_ids(assessment: Assessment) -> list[UUID]:
    return [q.id for q in assessment.questions]
