from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Sequence

from adatickets.lifecycle import EditRecord, NotificationRecord, Role, TicketSnapshot, TicketStatus


class TicketType(str, Enum):
    BUG = "bug"
    FEATURE = "feature"


class Priority(str, Enum):
    """Ticket priority, ordered from lowest to highest."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(slots=True)
class Ticket:
    """Aggregate root representing a submitted ticket."""

    id: str
    type: TicketType
    title: str
    description: str
    priority: Priority
    status: TicketStatus
    platform_id: str
    creator_user_id: str
    operator_user_id: str | None
    created_at: datetime
    updated_at: datetime
    version: int = 1

    def snapshot(self) -> TicketSnapshot:
        return TicketSnapshot(
            id=self.id,
            status=self.status,
            platform_id=self.platform_id,
            creator_user_id=self.creator_user_id,
            operator_user_id=self.operator_user_id,
        )


@dataclass(slots=True)
class Reply:
    """Message posted on a ticket by its creator or an operator."""

    id: str
    ticket_id: str
    author_user_id: str
    message: str
    created_at: datetime


@dataclass(slots=True)
class Platform:
    id: str
    name: str
    repository_url: str


@dataclass(slots=True)
class UserPlatform:
    """Operator preference for a platform, used to pick assignees."""

    user_id: str
    platform_id: str


@dataclass(slots=True)
class User:
    id: str
    username: str
    role: Role
    is_active: bool = True


@dataclass(slots=True)
class TicketAggregate:
    """Container bundling the ticket with its replies and audit trail."""

    ticket: Ticket
    replies: Sequence[Reply] = field(default_factory=list)
    edits: Sequence[EditRecord] = field(default_factory=list)
    notifications: Sequence[NotificationRecord] = field(default_factory=list)
