"""
Traducción de las excepciones de dominio a respuestas HTTP.
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.services.exceptions import (
    InstanceNotFoundError,
    InvalidRecurrenceError,
    InvalidTransitionError,
    OccurrenceCapExceededError,
    ScheduleConflictError,
    ScheduleError,
    ScheduleNotFoundError,
    SchedulePersistenceError,
    ScheduleValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ScheduleValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidRecurrenceError, status.HTTP_400_BAD_REQUEST),
    (OccurrenceCapExceededError, status.HTTP_400_BAD_REQUEST),
    (ScheduleNotFoundError, status.HTTP_404_NOT_FOUND),
    (InstanceNotFoundError, status.HTTP_404_NOT_FOUND),
    (ScheduleConflictError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (SchedulePersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: ScheduleError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def schedule_error_handler(request: Request, exc: ScheduleError) -> JSONResponse:
    status_code = status_for(exc)
    content = {"detail": str(exc)}

    if isinstance(exc, ScheduleValidationError):
        content["errors"] = exc.errors
    elif isinstance(exc, SchedulePersistenceError):
        content["instance_state"] = exc.instance_state.value
    elif isinstance(exc, InvalidTransitionError):
        content["current_status"] = exc.current_status

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rechazada ({status_code}): {exc}")

    return JSONResponse(status_code=status_code, content=content)
