"""SQLModel table definitions for the ADAtickets data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class UserTable(SQLModel, table=True):
    """Accounts able to open, handle or administer tickets."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    username: str = Field(sa_column=Column(String(150), nullable=False, unique=True))
    role: str = Field(sa_column=Column(String(20), nullable=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class PlatformTable(SQLModel, table=True):
    """External repositories tickets are filed against."""

    __tablename__ = "platforms"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(50), nullable=False, unique=True))
    repository_url: str = Field(sa_column=Column(String(2048), nullable=False))


class UserPlatformTable(SQLModel, table=True):
    """Operator preference for a platform."""

    __tablename__ = "user_platforms"

    user_id: str = Field(
        sa_column=Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    )
    platform_id: str = Field(
        sa_column=Column(String(36), ForeignKey("platforms.id", ondelete="CASCADE"), primary_key=True)
    )


class TicketTable(SQLModel, table=True):
    __tablename__ = "tickets"

    id: str = Field(primary_key=True, index=True)
    type: str = Field(sa_column=Column(String(20), nullable=False))
    title: str = Field(sa_column=Column(String(50), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    status: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    platform_id: str = Field(
        sa_column=Column(String(36), ForeignKey("platforms.id", ondelete="RESTRICT"), nullable=False)
    )
    creator_user_id: str = Field(sa_column=Column(String(36), ForeignKey("users.id"), nullable=False))
    operator_user_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("users.id"), nullable=True)
    )
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class ReplyTable(SQLModel, table=True):
    """Messages exchanged on a ticket."""

    __tablename__ = "replies"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    )
    author_user_id: str = Field(sa_column=Column(String(36), ForeignKey("users.id"), nullable=False))
    message: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class EditTable(SQLModel, table=True):
    """Audit trail of accepted ticket transitions."""

    __tablename__ = "edits"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    )
    user_id: str = Field(sa_column=Column(String(36), ForeignKey("users.id"), nullable=False))
    description: str = Field(sa_column=Column(String(200), nullable=False))
    old_status: str = Field(sa_column=Column(String(50), nullable=False))
    new_status: str = Field(sa_column=Column(String(50), nullable=False))
    # Orders edits written in the same transaction, which share a timestamp.
    position: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class NotificationTable(SQLModel, table=True):
    __tablename__ = "notifications"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    )
    edit_id: str = Field(
        sa_column=Column(String(36), ForeignKey("edits.id", ondelete="CASCADE"), nullable=False)
    )
    user_id: str = Field(sa_column=Column(String(36), ForeignKey("users.id"), nullable=False, index=True))
    message: str = Field(sa_column=Column(String(200), nullable=False))
    is_read: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
