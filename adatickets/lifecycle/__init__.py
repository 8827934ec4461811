"""Ticket lifecycle state machine and the records its transitions produce."""

from .effects import EditRecord, NotificationRecord, SideEffectEmitter, SideEffects
from .state import (
    Actor,
    InvalidAssigneeError,
    InvalidTransitionError,
    NoAvailableOperatorError,
    OperatorPool,
    Role,
    TicketEvent,
    TicketLifecycle,
    TicketSnapshot,
    TicketStatus,
    TransitionError,
    TransitionKind,
    TransitionOutcome,
    TransitionRequest,
    UnauthorizedTransitionError,
)

__all__ = [
    "Actor",
    "EditRecord",
    "InvalidAssigneeError",
    "InvalidTransitionError",
    "NoAvailableOperatorError",
    "NotificationRecord",
    "OperatorPool",
    "Role",
    "SideEffectEmitter",
    "SideEffects",
    "TicketEvent",
    "TicketLifecycle",
    "TicketSnapshot",
    "TicketStatus",
    "TransitionError",
    "TransitionKind",
    "TransitionOutcome",
    "TransitionRequest",
    "UnauthorizedTransitionError",
]
