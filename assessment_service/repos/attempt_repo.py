from __future__ import annotations

import threading
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from assessment_service.models.attempt import (
    IN_PROGRESS,
    SUBMITTED,
    Attempt,
    AttemptResult,
)


class AttemptBusyError(RuntimeError):
    """The attempt is already claimed further up the current call stack."""


class AttemptRepo(Protocol):
    async def get(self, attempt_id: UUID) -> Attempt | None: ...
    def claim(
        self, attempt_id: UUID
    ) -> AbstractAsyncContextManager[Attempt | None]: ...
    async def get_in_progress(
        self, assessment_id: UUID, user_id: str
    ) -> Attempt | None: ...
    async def add_in_progress(self, attempt: Attempt) -> Attempt: ...
    async def count_submitted(self, assessment_id: UUID, user_id: str) -> int: ...
    async def list_submitted(self, assessment_id: UUID) -> list[Attempt]: ...
    async def list_expired(
        self, now: int, assessment_id: UUID | None = None
    ) -> list[Attempt]: ...
    async def compare_and_set_submitted(
        self,
        attempt_id: UUID,
        *,
        submitted_at: int,
        timed_out: bool,
        result: AttemptResult,
    ) -> bool: ...


class InMemoryAttemptRepo:
    """Dict-backed attempts.

    add_in_progress and compare_and_set_submitted hold a lock so the
    one-in-progress-per-user rule and the single IN_PROGRESS -> SUBMITTED
    transition hold even when handlers run on several threads.

    claim() stands in for a row lock.  Another thread waits for the
    holder to let go; a nested claim from the holding thread raises
    AttemptBusyError instead of deadlocking.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Attempt] = {}
        self._lock = threading.Lock()
        self._released = threading.Condition(self._lock)
        self._claims: dict[UUID, int] = {}

    async def get(self, attempt_id: UUID) -> Attempt | None:
        return self._by_id.get(attempt_id)

    @asynccontextmanager
    async def claim(self, attempt_id: UUID) -> AsyncIterator[Attempt | None]:
        me = threading.get_ident()
        with self._released:
            while attempt_id in self._claims:
                if self._claims[attempt_id] == me:
                    raise AttemptBusyError(f"attempt {attempt_id} is already claimed")
                self._released.wait()
            self._claims[attempt_id] = me
        try:
            yield self._by_id.get(attempt_id)
        finally:
            with self._released:
                self._claims.pop(attempt_id, None)
                self._released.notify_all()

    async def get_in_progress(self, assessment_id: UUID, user_id: str) -> Attempt | None:
        return self._find_in_progress(assessment_id, user_id)

    async def add_in_progress(self, attempt: Attempt) -> Attempt:
        """Store a new in-progress attempt.

        Returns the attempt that ends up in progress: the given one, or an
        existing one for the same (assessment, user) if it got there first.
        """
        with self._lock:
            existing = self._find_in_progress(attempt.assessment_id, attempt.user_id)
            if existing is not None:
                return existing
            if attempt.id in self._by_id:
                raise ValueError("attempt already exists")
            self._by_id[attempt.id] = attempt
            return attempt

    async def count_submitted(self, assessment_id: UUID, user_id: str) -> int:
        return sum(
            1
            for a in self._by_id.values()
            if a.assessment_id == assessment_id
            and a.user_id == user_id
            and a.status == SUBMITTED
        )

    async def list_submitted(self, assessment_id: UUID) -> list[Attempt]:
        return [
            a
            for a in self._by_id.values()
            if a.assessment_id == assessment_id and a.status == SUBMITTED
        ]

    async def list_expired(
        self, now: int, assessment_id: UUID | None = None
    ) -> list[Attempt]:
        return [
            a
            for a in self._by_id.values()
            if a.status == IN_PROGRESS
            and a.expires_at is not None
            and now >= a.expires_at
            and (assessment_id is None or a.assessment_id == assessment_id)
        ]

    async def compare_and_set_submitted(
        self,
        attempt_id: UUID,
        *,
        submitted_at: int,
        timed_out: bool,
        result: AttemptResult,
    ) -> bool:
        with self._lock:
            current = self._by_id.get(attempt_id)
            if current is None or current.status != IN_PROGRESS:
                return False
            self._by_id[attempt_id] = replace(
                current,
                status=SUBMITTED,
                submitted_at=submitted_at,
                timed_out=timed_out,
                result=result,
            )
            return True

    def clear(self) -> None:
        self._by_id.clear()
        self._claims.clear()

    def _find_in_progress(self, assessment_id: UUID, user_id: str) -> Attempt | None:
        for a in self._by_id.values():
            if (
                a.assessment_id == assessment_id
                and a.user_id == user_id
                and a.status == IN_PROGRESS
            ):
                return a
        return None
