"""Errors raised by the attempt engine.

Everything except InternalError is a caller problem and is reported
straight back, never retried.  InternalError means stored question data
cannot be scored; the attempt is left in progress until it is fixed.
"""

from __future__ import annotations


class AssessmentError(Exception):
    pass


class ValidationError(AssessmentError, ValueError):
    """Answer value does not fit the question it is saved against."""


class NotFoundError(AssessmentError, LookupError):
    pass


class StateError(AssessmentError):
    """The attempt or assessment is not in a state that allows the call."""


class AttemptClosed(StateError):
    pass


class MaxAttemptsReached(StateError):
    pass


class AssessmentNotOpen(StateError):
    pass


class NotSubmittedError(StateError):
    pass


class ExpiredError(AssessmentError):
    pass


class AttemptExpired(ExpiredError):
    pass


class InternalError(AssessmentError):
    pass
