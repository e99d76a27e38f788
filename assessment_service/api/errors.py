"""Translate engine errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from assessment_service.services.errors import (
    AssessmentError,
    ExpiredError,
    InternalError,
    NotFoundError,
    StateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[AssessmentError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateError, status.HTTP_409_CONFLICT),
    (ExpiredError, status.HTTP_410_GONE),
    (InternalError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http(err: AssessmentError) -> HTTPException:
    """HTTPException for an engine error; raise it `from None`."""
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(err, error_type):
            break
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if code >= 500:
        # Stored question data is broken; callers get no details.
        logger.error("Attempt could not be scored: %s", err)
        return HTTPException(status_code=code, detail="attempt could not be scored")

    logger.warning("%s: %s", type(err).__name__, err)
    return HTTPException(status_code=code, detail=str(err))
