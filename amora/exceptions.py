"""
Amora — Service-layer exceptions and FastAPI error handlers.

Storage, lookup and validation failures propagate from the services to the
HTTP layer unchanged in kind; ``service_exception_handler`` maps each kind to
a status code.  Oracle failures never leave the scorer.
"""

from __future__ import annotations

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger("amora.exceptions")


class AmoraError(Exception):
    """Base exception for service-layer errors."""
    pass


class NotFound(AmoraError):
    """Raised when a referenced user or profile does not exist."""
    pass


class ProfileIncomplete(AmoraError):
    """Raised when the requester lacks the verified data needed for scoring."""
    pass


class InvalidDecision(AmoraError):
    """Raised for a like or pass that can never be valid (e.g. on oneself)."""
    pass


class DuplicateDecision(AmoraError):
    """Raised when the same like or pass is submitted twice."""
    pass


class StorageFailure(AmoraError):
    """Raised when a persistence read or write fails."""
    pass


class OracleBatchFailure(AmoraError):
    """One scoring batch could not be used; absorbed by the scorer."""

    def __init__(self, batch_index: int, reason: str) -> None:
        super().__init__(f"batch {batch_index}: {reason}")
        self.batch_index = batch_index
        self.reason = reason


class OracleTotalFailure(AmoraError):
    """No scoring batch succeeded; triggers random fallback scoring."""
    pass


_STATUS_CODES: dict[type[AmoraError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    ProfileIncomplete: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidDecision: status.HTTP_400_BAD_REQUEST,
    DuplicateDecision: status.HTTP_409_CONFLICT,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: AmoraError) -> int:
    for exc_type, code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def service_exception_handler(
    request: Request,
    exc: AmoraError,
) -> JSONResponse:
    """Translate a service exception into a JSON error response."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(
            "service_error",
            path=request.url.path,
            error=str(exc),
            type=exc.__class__.__name__,
        )
    else:
        logger.info(
            "service_rejection",
            path=request.url.path,
            error=str(exc),
            type=exc.__class__.__name__,
        )

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": str(exc),
            "type": exc.__class__.__name__,
        },
    )
