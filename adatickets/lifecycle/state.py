from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import AbstractSet, Mapping, Sequence


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    UNASSIGNED = "unassigned"
    WAITING_OPERATOR = "waiting_operator"
    WAITING_USER = "waiting_user"
    CLOSED = "closed"


class Role(str, Enum):
    """Roles an actor can hold."""

    USER = "user"
    OPERATOR = "operator"
    ADMIN = "admin"


class TicketEvent(str, Enum):
    """Requested changes a caller can submit for a ticket."""

    ASSIGN = "assign"
    REPLY = "reply"
    CLOSE = "close"
    REASSIGN = "reassign"
    EDIT = "edit"


class TransitionKind(str, Enum):
    """Tag describing an accepted transition, used to pick message templates."""

    CREATED = "created"
    AUTO_ASSIGNED = "auto_assigned"
    ASSIGNED = "assigned"
    REASSIGNED = "reassigned"
    EDITED = "edited"
    CLOSED = "closed"
    REOPENED = "reopened"


class TransitionError(Exception):
    """Base error for rejected ticket transitions."""


class InvalidTransitionError(TransitionError):
    """Raised when the requested edge does not exist for the current status."""


class InvalidAssigneeError(InvalidTransitionError):
    """Raised when the requested operator cannot take the ticket."""


class UnauthorizedTransitionError(TransitionError):
    """Raised when the actor is not allowed to perform the transition."""


class NoAvailableOperatorError(TransitionError):
    """Raised when auto-assignment finds no candidate operator."""


@dataclass(frozen=True, slots=True)
class TicketSnapshot:
    """Copied ticket fields the lifecycle needs to decide a transition."""

    id: str
    status: TicketStatus
    platform_id: str
    creator_user_id: str
    operator_user_id: str | None = None


@dataclass(frozen=True, slots=True)
class Actor:
    user_id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.OPERATOR, Role.ADMIN)


@dataclass(frozen=True, slots=True)
class TransitionRequest:
    """A requested change; ``assign`` without an operator means auto-assign."""

    event: TicketEvent
    operator_user_id: str | None = None


@dataclass(frozen=True, slots=True)
class OperatorPool:
    """Operators known to the caller at the time of the request.

    ``candidates`` are the users preferring the ticket's platform and
    ``active_operators`` every user currently holding an operator or admin role.
    """

    candidates: Sequence[str] = ()
    active_operators: AbstractSet[str] = frozenset()

    def pick(self) -> str:
        for user_id in sorted(self.candidates):
            if user_id in self.active_operators:
                return user_id
        raise NoAvailableOperatorError("No operator prefers this platform, retry later")


@dataclass(frozen=True, slots=True)
class TransitionOutcome:
    """Result of validating a requested change against the lifecycle."""

    ticket_id: str
    kind: TransitionKind
    old_status: TicketStatus
    new_status: TicketStatus
    old_operator: str | None
    new_operator: str | None
    actor: Actor
    timestamp: datetime

    @property
    def operator_changed(self) -> bool:
        return self.old_operator != self.new_operator

    def apply(self, snapshot: TicketSnapshot) -> TicketSnapshot:
        return replace(snapshot, status=self.new_status, operator_user_id=self.new_operator)


class TicketLifecycle:
    """Validate ticket lifecycle transitions and compute their outcome."""

    _REPLY_TRANSITIONS: Mapping[TicketStatus, TicketStatus] = {
        TicketStatus.WAITING_OPERATOR: TicketStatus.WAITING_USER,
        TicketStatus.WAITING_USER: TicketStatus.WAITING_OPERATOR,
        TicketStatus.CLOSED: TicketStatus.WAITING_OPERATOR,
    }

    _CLOSABLE: AbstractSet[TicketStatus] = frozenset(
        {TicketStatus.WAITING_OPERATOR, TicketStatus.WAITING_USER}
    )

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.UNASSIGNED

    @classmethod
    def propose_creation(
        cls, ticket: TicketSnapshot, actor: Actor, *, now: datetime | None = None
    ) -> TransitionOutcome:
        if ticket.status != cls.initial_state() or ticket.operator_user_id is not None:
            raise InvalidTransitionError(f"Ticket {ticket.id} cannot be created as {ticket.status.value}")
        return cls._outcome(ticket, TransitionKind.CREATED, ticket.status, None, actor, now)

    @classmethod
    def propose_transition(
        cls,
        ticket: TicketSnapshot,
        request: TransitionRequest,
        actor: Actor,
        pool: OperatorPool | None = None,
        *,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        pool = pool or OperatorPool()
        handlers = {
            TicketEvent.ASSIGN: cls._assign,
            TicketEvent.REPLY: cls._reply,
            TicketEvent.CLOSE: cls._close,
            TicketEvent.REASSIGN: cls._reassign,
            TicketEvent.EDIT: cls._edit,
        }
        kind, status, operator = handlers[request.event](ticket, request, actor, pool)
        return cls._outcome(ticket, kind, status, operator, actor, now)

    @staticmethod
    def _assign(
        ticket: TicketSnapshot, request: TransitionRequest, actor: Actor, pool: OperatorPool
    ) -> tuple[TransitionKind, TicketStatus, str | None]:
        if ticket.status != TicketStatus.UNASSIGNED:
            raise InvalidTransitionError(
                f"Cannot assign ticket in status {ticket.status.value}; reassign it instead"
            )
        if request.operator_user_id is None:
            return TransitionKind.AUTO_ASSIGNED, TicketStatus.WAITING_OPERATOR, pool.pick()

        if not actor.is_staff:
            raise UnauthorizedTransitionError("Only operators or admins can assign tickets")
        _ensure_operator(request.operator_user_id, pool)
        return TransitionKind.ASSIGNED, TicketStatus.WAITING_OPERATOR, request.operator_user_id

    @classmethod
    def _reply(
        cls, ticket: TicketSnapshot, request: TransitionRequest, actor: Actor, pool: OperatorPool
    ) -> tuple[TransitionKind, TicketStatus, str | None]:
        target = cls._REPLY_TRANSITIONS.get(ticket.status)
        if target is None:
            raise InvalidTransitionError(f"Cannot reply to ticket in status {ticket.status.value}")

        is_creator = actor.user_id == ticket.creator_user_id
        is_operator_side = not is_creator and (
            actor.user_id == ticket.operator_user_id or actor.role == Role.ADMIN
        )
        if not (is_creator or is_operator_side):
            raise UnauthorizedTransitionError(
                f"User {actor.user_id} is neither the creator nor the operator of ticket {ticket.id}"
            )

        if ticket.status == TicketStatus.CLOSED:
            operator = ticket.operator_user_id
            if operator is None or operator not in pool.active_operators:
                operator = pool.pick()
            return TransitionKind.REOPENED, target, operator

        if ticket.status == TicketStatus.WAITING_OPERATOR and not is_operator_side:
            raise InvalidTransitionError("Ticket is waiting for the operator to reply")
        if ticket.status == TicketStatus.WAITING_USER and not is_creator:
            raise InvalidTransitionError("Ticket is waiting for the creator to reply")
        return TransitionKind.EDITED, target, ticket.operator_user_id

    @classmethod
    def _close(
        cls, ticket: TicketSnapshot, request: TransitionRequest, actor: Actor, pool: OperatorPool
    ) -> tuple[TransitionKind, TicketStatus, str | None]:
        if ticket.status not in cls._CLOSABLE:
            raise InvalidTransitionError(f"Cannot close ticket in status {ticket.status.value}")
        if not actor.is_staff:
            raise UnauthorizedTransitionError("Only operators or admins can close tickets")
        return TransitionKind.CLOSED, TicketStatus.CLOSED, ticket.operator_user_id

    @staticmethod
    def _reassign(
        ticket: TicketSnapshot, request: TransitionRequest, actor: Actor, pool: OperatorPool
    ) -> tuple[TransitionKind, TicketStatus, str | None]:
        if ticket.status == TicketStatus.UNASSIGNED:
            raise InvalidTransitionError("Cannot reassign an unassigned ticket; assign it instead")
        if request.operator_user_id is None:
            raise InvalidAssigneeError("Reassignment requires a target operator")
        if not actor.is_staff:
            raise UnauthorizedTransitionError("Only operators or admins can reassign tickets")
        if request.operator_user_id == ticket.operator_user_id:
            raise InvalidAssigneeError(f"Ticket {ticket.id} is already assigned to {request.operator_user_id}")
        _ensure_operator(request.operator_user_id, pool)
        return TransitionKind.REASSIGNED, ticket.status, request.operator_user_id

    @staticmethod
    def _edit(
        ticket: TicketSnapshot, request: TransitionRequest, actor: Actor, pool: OperatorPool
    ) -> tuple[TransitionKind, TicketStatus, str | None]:
        if ticket.status == TicketStatus.CLOSED:
            raise InvalidTransitionError("Closed tickets cannot be edited")
        if actor.user_id != ticket.creator_user_id and not actor.is_staff:
            raise UnauthorizedTransitionError(f"User {actor.user_id} cannot edit ticket {ticket.id}")
        return TransitionKind.EDITED, ticket.status, ticket.operator_user_id

    @staticmethod
    def _outcome(
        ticket: TicketSnapshot,
        kind: TransitionKind,
        status: TicketStatus,
        operator: str | None,
        actor: Actor,
        now: datetime | None,
    ) -> TransitionOutcome:
        return TransitionOutcome(
            ticket_id=ticket.id,
            kind=kind,
            old_status=ticket.status,
            new_status=status,
            old_operator=ticket.operator_user_id,
            new_operator=operator,
            actor=actor,
            timestamp=now or datetime.now(timezone.utc),
        )


def _ensure_operator(user_id: str, pool: OperatorPool) -> None:
    if user_id not in pool.active_operators:
        raise InvalidAssigneeError(f"User {user_id} is not an active operator")
