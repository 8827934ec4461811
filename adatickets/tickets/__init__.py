"""Ticket persistence and the service orchestrating lifecycle transitions."""

from .errors import (
    DuplicateEntityError,
    NotificationNotFoundError,
    PermissionDeniedError,
    PlatformNotFoundError,
    TicketConflictError,
    TicketNotFoundError,
    TicketServiceError,
    UserNotFoundError,
)
from .models import Platform, Priority, Reply, Ticket, TicketAggregate, TicketType, User
from .repository import TicketRepository
from .service import TicketService

__all__ = [
    "DuplicateEntityError",
    "NotificationNotFoundError",
    "PermissionDeniedError",
    "Platform",
    "PlatformNotFoundError",
    "Priority",
    "Reply",
    "Ticket",
    "TicketAggregate",
    "TicketConflictError",
    "TicketNotFoundError",
    "TicketRepository",
    "TicketService",
    "TicketServiceError",
    "TicketType",
    "User",
    "UserNotFoundError",
]
