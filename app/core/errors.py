from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings

logger = logging.getLogger("feriamatch.errors")


class FairError(HTTPException):
    """Base for workflow errors surfaced to the client as ``{"code", "message"}``."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "fair_error"
    default_message = "Request could not be completed."

    def __init__(self, code: str | None = None, message: str | None = None) -> None:
        self.code = code or self.code
        self.message = message or self.default_message
        super().__init__(status_code=self.status_code, detail={"code": self.code, "message": self.message})


class ValidationFailed(FairError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_failed"
    default_message = "Invalid data."


class NotFoundError(FairError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found."


class AccessDenied(FairError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "access_denied"
    default_message = "You are not allowed to perform this action."


class ConflictError(FairError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "The request conflicts with the current state."


class ScheduleConflictError(ConflictError):
    code = "schedule_conflict"
    default_message = "You already have an interview that overlaps this time slot."


class DuplicateBookingError(ConflictError):
    code = "duplicate_booking"
    default_message = "You already requested an interview with this company."


class CapacityExceededError(ConflictError):
    code = "allocation_full"
    default_message = "This company has no interview places left in this slot."


class InvalidStatusTransition(ConflictError):
    code = "invalid_transition"
    default_message = "The booking can no longer change to that status."


class SlotsAlreadyExistError(ConflictError):
    code = "slots_already_exist"
    default_message = "The event already has slots. Confirm to append duplicates."


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Unhandled storage failures become a 500 carrying the driver message outside production."""
    request_id = getattr(request.state, "request_id", None)
    logger.exception("storage_error", extra={"request_id": request_id, "path": request.url.path})
    message = "Storage error."
    if settings.environment != "production":
        message = f"Storage error: {exc}"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"code": "storage_error", "message": message}},
    )
