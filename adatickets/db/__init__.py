"""Database models and utilities."""

from .models import (
    EditTable,
    NotificationTable,
    PlatformTable,
    ReplyTable,
    TicketTable,
    UserPlatformTable,
    UserTable,
)

__all__ = [
    "EditTable",
    "NotificationTable",
    "PlatformTable",
    "ReplyTable",
    "TicketTable",
    "UserPlatformTable",
    "UserTable",
]
