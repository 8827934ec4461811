class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketNotFoundError(TicketServiceError):
    """Raised when a ticket could not be located."""


class PlatformNotFoundError(TicketServiceError):
    """Raised when a ticket references an unknown platform."""


class UserNotFoundError(TicketServiceError):
    pass


class NotificationNotFoundError(TicketServiceError):
    """Raised when a notification could not be located for the requesting user."""


class PermissionDeniedError(TicketServiceError):
    """Raised when a user acts on a resource outside of the ticket lifecycle they cannot touch."""


class TicketConflictError(TicketServiceError):
    """Raised when the ticket changed between reading it and persisting a transition."""


class DuplicateEntityError(TicketServiceError):
    """Raised when a user or platform collides with a unique column of an existing row."""
