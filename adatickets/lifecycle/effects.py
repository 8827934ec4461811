"""Audit and notification records produced by accepted ticket transitions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Sequence

from .state import TicketSnapshot, TicketStatus, TransitionKind, TransitionOutcome


class Audience(str, Enum):
    """Who a notification is addressed to, relative to the ticket."""

    WATCHER = "watcher"
    CREATOR = "creator"
    OPERATOR = "operator"
    PREVIOUS_OPERATOR = "previous_operator"


EDIT_TEMPLATES: Mapping[TransitionKind, str] = {
    TransitionKind.CREATED: "Ticket created",
    TransitionKind.AUTO_ASSIGNED: "Ticket automatically assigned to operator",
    TransitionKind.ASSIGNED: "Ticket assigned to operator",
    TransitionKind.REASSIGNED: "Ticket reassigned to another operator",
    TransitionKind.EDITED: "Ticket edited",
    TransitionKind.CLOSED: "Ticket closed",
    TransitionKind.REOPENED: "Ticket reopened",
}

NOTIFICATION_TEMPLATES: Mapping[TransitionKind, Mapping[Audience, str]] = {
    TransitionKind.CREATED: {
        Audience.WATCHER: "A new ticket was opened on one of your platforms",
    },
    TransitionKind.AUTO_ASSIGNED: {
        Audience.OPERATOR: "The system assigned a ticket to you",
        Audience.CREATOR: "Your ticket was assigned to an operator",
    },
    TransitionKind.ASSIGNED: {
        Audience.OPERATOR: "A ticket was assigned to you",
        Audience.CREATOR: "Your ticket was assigned to an operator",
    },
    TransitionKind.REASSIGNED: {
        Audience.OPERATOR: "A ticket was assigned to you",
        Audience.PREVIOUS_OPERATOR: "A ticket was reassigned to another operator",
    },
    TransitionKind.EDITED: {
        Audience.OPERATOR: "A ticket assigned to you was updated",
        Audience.CREATOR: "Your ticket was updated",
        Audience.WATCHER: "An unassigned ticket was updated",
    },
    TransitionKind.CLOSED: {
        Audience.OPERATOR: "A ticket assigned to you was closed",
        Audience.CREATOR: "Your ticket was closed",
    },
    TransitionKind.REOPENED: {
        Audience.OPERATOR: "A closed ticket assigned to you was reopened",
        Audience.CREATOR: "Your reopened ticket was assigned to a new operator",
    },
}

_missing = set(TransitionKind) - set(EDIT_TEMPLATES) | set(TransitionKind) - set(NOTIFICATION_TEMPLATES)
if _missing:
    raise RuntimeError(f"Missing templates for transition kinds: {sorted(kind.value for kind in _missing)}")


@dataclass(frozen=True, slots=True)
class EditRecord:
    """Immutable audit entry for one accepted transition."""

    id: str
    ticket_id: str
    user_id: str
    description: str
    old_status: TicketStatus
    new_status: TicketStatus
    created_at: datetime


@dataclass(frozen=True, slots=True)
class NotificationRecord:
    """Per-recipient message generated by a transition."""

    id: str
    ticket_id: str
    edit_id: str
    user_id: str
    message: str
    created_at: datetime
    is_read: bool = False


@dataclass(frozen=True, slots=True)
class SideEffects:
    edit: EditRecord
    notifications: Sequence[NotificationRecord] = field(default_factory=tuple)

    @property
    def recipients(self) -> tuple[str, ...]:
        return tuple(notification.user_id for notification in self.notifications)


class SideEffectEmitter:
    """Build the Edit and Notification records for a transition outcome."""

    def emit(
        self,
        outcome: TransitionOutcome,
        ticket: TicketSnapshot,
        *,
        watchers: Iterable[str] = (),
        operators: Iterable[str] = (),
    ) -> SideEffects:
        """Return the records to persist alongside the updated ticket.

        ``watchers`` are the operators preferring the ticket's platform and
        ``operators`` every active operator; both only matter when nobody is
        assigned yet.
        """

        edit = EditRecord(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            user_id=outcome.actor.user_id,
            description=EDIT_TEMPLATES[outcome.kind],
            old_status=outcome.old_status,
            new_status=outcome.new_status,
            created_at=outcome.timestamp,
        )

        templates = NOTIFICATION_TEMPLATES[outcome.kind]
        notifications: list[NotificationRecord] = []
        seen: set[str] = set()
        for audience, user_id in self._recipients(outcome, ticket, list(watchers), list(operators)):
            if user_id is None or user_id in seen:
                continue
            seen.add(user_id)
            notifications.append(
                NotificationRecord(
                    id=str(uuid.uuid4()),
                    ticket_id=ticket.id,
                    edit_id=edit.id,
                    user_id=user_id,
                    message=templates[audience],
                    created_at=outcome.timestamp,
                )
            )
        return SideEffects(edit=edit, notifications=tuple(notifications))

    @staticmethod
    def _recipients(
        outcome: TransitionOutcome,
        ticket: TicketSnapshot,
        watchers: list[str],
        operators: list[str],
    ) -> list[tuple[Audience, str | None]]:
        creator = ticket.creator_user_id
        kind = outcome.kind

        if kind == TransitionKind.CREATED:
            pool = watchers or operators
            return [(Audience.WATCHER, user_id) for user_id in sorted(pool)]

        if kind in (TransitionKind.AUTO_ASSIGNED, TransitionKind.ASSIGNED):
            return [(Audience.OPERATOR, outcome.new_operator), (Audience.CREATOR, creator)]

        if kind == TransitionKind.REASSIGNED:
            return [
                (Audience.PREVIOUS_OPERATOR, outcome.old_operator),
                (Audience.OPERATOR, outcome.new_operator),
            ]

        if kind == TransitionKind.CLOSED:
            return [(Audience.CREATOR, creator), (Audience.OPERATOR, outcome.new_operator)]

        if kind == TransitionKind.REOPENED:
            recipients: list[tuple[Audience, str | None]] = [(Audience.OPERATOR, outcome.new_operator)]
            if outcome.operator_changed:
                recipients.append((Audience.CREATOR, creator))
            return recipients

        # Edited: notify the counterpart of whoever acted.
        actor_id = outcome.actor.user_id
        operator = outcome.new_operator
        if actor_id == creator:
            if operator is not None:
                return [(Audience.OPERATOR, operator)]
            return [(Audience.WATCHER, user_id) for user_id in sorted(watchers or operators)]
        if actor_id == operator:
            return [(Audience.CREATOR, creator)]
        recipients = [(Audience.CREATOR, creator)]
        if operator is not None:
            recipients.append((Audience.OPERATOR, operator))
        else:
            recipients.extend((Audience.WATCHER, user_id) for user_id in sorted(watchers or operators))
        return recipients
