from __future__ import annotations

from fastapi import HTTPException, status

from adatickets.lifecycle import (
    InvalidTransitionError,
    NoAvailableOperatorError,
    TransitionError,
    UnauthorizedTransitionError,
)
from adatickets.tickets.errors import (
    DuplicateEntityError,
    NotificationNotFoundError,
    PermissionDeniedError,
    PlatformNotFoundError,
    TicketConflictError,
    TicketNotFoundError,
    TicketServiceError,
    UserNotFoundError,
)

DOMAIN_ERRORS = (TicketServiceError, TransitionError)

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (TicketNotFoundError, status.HTTP_404_NOT_FOUND),
    (PlatformNotFoundError, status.HTTP_404_NOT_FOUND),
    (NotificationNotFoundError, status.HTTP_404_NOT_FOUND),
    (UserNotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (UnauthorizedTransitionError, status.HTTP_403_FORBIDDEN),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (NoAvailableOperatorError, status.HTTP_409_CONFLICT),
    (TicketConflictError, status.HTTP_409_CONFLICT),
    (DuplicateEntityError, status.HTTP_409_CONFLICT),
)


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate a service or lifecycle error into the matching HTTP error."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
