from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from adatickets.db.models import (
    EditTable,
    NotificationTable,
    PlatformTable,
    ReplyTable,
    TicketTable,
    UserPlatformTable,
    UserTable,
)
from adatickets.lifecycle import EditRecord, NotificationRecord, Role, TicketStatus

from .errors import DuplicateEntityError
from .models import Platform, Priority, Reply, Ticket, TicketAggregate, TicketType, User

_STAFF_ROLES = (Role.OPERATOR.value, Role.ADMIN.value)


class TicketRepository:
    """Persistence helper wrapping tickets, their audit trail and the user directory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    # Users and platforms

    async def create_user(self, user: User) -> User:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        UserTable(id=user.id, username=user.username, role=user.role.value, is_active=user.is_active)
                    )
        except IntegrityError as exc:
            raise DuplicateEntityError(f"User {user.username!r} already exists") from exc
        return user

    async def get_user(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            row = await session.get(UserTable, user_id)
            if row is None:
                return None
            return self._table_to_user(row)

    async def list_users(self) -> list[User]:
        async with self._session_factory() as session:
            result = await session.execute(select(UserTable).order_by(UserTable.username.asc()))
            return [self._table_to_user(row) for row in result.scalars().all()]

    async def update_user(
        self, user_id: str, *, role: Role | None = None, is_active: bool | None = None
    ) -> User | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(UserTable, user_id)
                if row is None:
                    return None
                if role is not None:
                    row.role = role.value
                if is_active is not None:
                    row.is_active = is_active
                updated = self._table_to_user(row)
        return updated

    async def list_active_operators(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserTable.id)
                .where(UserTable.role.in_(_STAFF_ROLES), UserTable.is_active.is_(True))
                .order_by(UserTable.id.asc())
            )
            return [str(user_id) for user_id in result.scalars().all()]

    async def create_platform(self, platform: Platform) -> Platform:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        PlatformTable(id=platform.id, name=platform.name, repository_url=platform.repository_url)
                    )
        except IntegrityError as exc:
            raise DuplicateEntityError(f"Platform {platform.name!r} already exists") from exc
        return platform

    async def get_platform(self, platform_id: str) -> Platform | None:
        async with self._session_factory() as session:
            row = await session.get(PlatformTable, platform_id)
            if row is None:
                return None
            return Platform(id=row.id, name=row.name, repository_url=row.repository_url)

    async def list_platforms(self) -> list[Platform]:
        async with self._session_factory() as session:
            result = await session.execute(select(PlatformTable).order_by(PlatformTable.name.asc()))
            return [
                Platform(id=row.id, name=row.name, repository_url=row.repository_url)
                for row in result.scalars().all()
            ]

    async def add_preference(self, user_id: str, platform_id: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.get(UserPlatformTable, (user_id, platform_id))
                if existing is None:
                    session.add(UserPlatformTable(user_id=user_id, platform_id=platform_id))

    async def remove_preference(self, user_id: str, platform_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.get(UserPlatformTable, (user_id, platform_id))
                if existing is None:
                    return False
                await session.delete(existing)
                return True

    async def list_preferred_platforms(self, user_id: str) -> list[Platform]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PlatformTable)
                .join(UserPlatformTable, UserPlatformTable.platform_id == PlatformTable.id)
                .where(UserPlatformTable.user_id == user_id)
                .order_by(PlatformTable.name.asc())
            )
            return [
                Platform(id=row.id, name=row.name, repository_url=row.repository_url)
                for row in result.scalars().all()
            ]

    async def list_preferring_operators(self, platform_id: str) -> list[str]:
        """Return active operators preferring ``platform_id``, ordered by id."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(UserPlatformTable.user_id)
                .join(UserTable, UserTable.id == UserPlatformTable.user_id)
                .where(
                    UserPlatformTable.platform_id == platform_id,
                    UserTable.role.in_(_STAFF_ROLES),
                    UserTable.is_active.is_(True),
                )
                .order_by(UserPlatformTable.user_id.asc())
            )
            return [str(user_id) for user_id in result.scalars().all()]

    # Tickets

    async def create_ticket(
        self,
        ticket: Ticket,
        edits: Sequence[EditRecord],
        notifications: Sequence[NotificationRecord],
    ) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(self._ticket_to_table(ticket))
                await session.flush()
                await self._add_effects(session, edits, notifications)

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def get_ticket_aggregate(self, ticket_id: str) -> TicketAggregate | None:
        async with self._session_factory() as session:
            ticket_row = await session.get(TicketTable, ticket_id)
            if ticket_row is None:
                return None

            reply_result = await session.execute(
                select(ReplyTable).where(ReplyTable.ticket_id == ticket_id).order_by(ReplyTable.created_at.asc())
            )
            edit_result = await session.execute(
                select(EditTable)
                .where(EditTable.ticket_id == ticket_id)
                .order_by(EditTable.created_at.asc(), EditTable.position.asc())
            )

        return TicketAggregate(
            ticket=self._table_to_ticket(ticket_row),
            replies=[self._table_to_reply(row) for row in reply_result.scalars().all()],
            edits=[self._table_to_edit(row) for row in edit_result.scalars().all()],
        )

    async def list_tickets(self, *, status: TicketStatus | None = None) -> list[Ticket]:
        statement = select(TicketTable).order_by(TicketTable.created_at.desc())
        if status is not None:
            statement = statement.where(TicketTable.status == status.value)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def apply_transition(
        self,
        ticket: Ticket,
        *,
        expected_version: int,
        edits: Sequence[EditRecord],
        notifications: Sequence[NotificationRecord],
        reply: Reply | None = None,
    ) -> Ticket | None:
        """Persist the updated ticket with its records in one transaction.

        Returns ``None`` without writing anything when the stored version no
        longer matches ``expected_version``.
        """

        new_version = expected_version + 1
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(TicketTable)
                    .where(TicketTable.id == ticket.id, TicketTable.version == expected_version)
                    .values(
                        title=ticket.title,
                        description=ticket.description,
                        priority=ticket.priority.value,
                        type=ticket.type.value,
                        status=ticket.status.value,
                        operator_user_id=ticket.operator_user_id,
                        version=new_version,
                        updated_at=ticket.updated_at,
                    )
                )
                if result.rowcount != 1:
                    return None
                if reply is not None:
                    session.add(
                        ReplyTable(
                            id=reply.id,
                            ticket_id=reply.ticket_id,
                            author_user_id=reply.author_user_id,
                            message=reply.message,
                            created_at=reply.created_at,
                        )
                    )
                await self._add_effects(session, edits, notifications)
        return replace(ticket, version=new_version)

    async def delete_ticket(self, ticket_id: str) -> bool:
        async with self._session_factory() as session:
            ticket_row = await session.get(TicketTable, ticket_id)
            if ticket_row is None:
                return False
            await session.delete(ticket_row)
            await session.commit()
            return True

    async def list_edits(self, ticket_id: str) -> list[EditRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(EditTable)
                .where(EditTable.ticket_id == ticket_id)
                .order_by(EditTable.created_at.asc(), EditTable.position.asc())
            )
            return [self._table_to_edit(row) for row in result.scalars().all()]

    # Notifications

    async def list_notifications(self, user_id: str, *, unread_only: bool = False) -> list[NotificationRecord]:
        statement = (
            select(NotificationTable)
            .where(NotificationTable.user_id == user_id)
            .order_by(NotificationTable.created_at.desc())
        )
        if unread_only:
            statement = statement.where(NotificationTable.is_read.is_(False))
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_notification(row) for row in result.scalars().all()]

    async def get_notification(self, notification_id: str) -> NotificationRecord | None:
        async with self._session_factory() as session:
            row = await session.get(NotificationTable, notification_id)
            if row is None:
                return None
            return self._table_to_notification(row)

    async def mark_notification_read(self, notification_id: str) -> NotificationRecord | None:
        async with self._session_factory() as session:
            row = await session.get(NotificationTable, notification_id)
            if row is None:
                return None
            row.is_read = True
            await session.commit()
            await session.refresh(row)
            return self._table_to_notification(row)

    @staticmethod
    async def _add_effects(
        session: AsyncSession,
        edits: Sequence[EditRecord],
        notifications: Sequence[NotificationRecord],
    ) -> None:
        for position, edit in enumerate(edits):
            session.add(
                EditTable(
                    id=edit.id,
                    ticket_id=edit.ticket_id,
                    user_id=edit.user_id,
                    description=edit.description,
                    old_status=edit.old_status.value,
                    new_status=edit.new_status.value,
                    position=position,
                    created_at=edit.created_at,
                )
            )
        await session.flush()
        for notification in notifications:
            session.add(
                NotificationTable(
                    id=notification.id,
                    ticket_id=notification.ticket_id,
                    edit_id=notification.edit_id,
                    user_id=notification.user_id,
                    message=notification.message,
                    is_read=notification.is_read,
                    created_at=notification.created_at,
                )
            )

    @staticmethod
    def _ticket_to_table(ticket: Ticket) -> TicketTable:
        return TicketTable(
            id=ticket.id,
            type=ticket.type.value,
            title=ticket.title,
            description=ticket.description,
            priority=ticket.priority.value,
            status=ticket.status.value,
            platform_id=ticket.platform_id,
            creator_user_id=ticket.creator_user_id,
            operator_user_id=ticket.operator_user_id,
            version=ticket.version,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            type=TicketType(row.type),
            title=row.title,
            description=row.description,
            priority=Priority(row.priority),
            status=TicketStatus(row.status),
            platform_id=row.platform_id,
            creator_user_id=row.creator_user_id,
            operator_user_id=row.operator_user_id,
            version=row.version,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )

    @staticmethod
    def _table_to_reply(row: ReplyTable) -> Reply:
        return Reply(
            id=row.id,
            ticket_id=row.ticket_id,
            author_user_id=row.author_user_id,
            message=row.message,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_edit(row: EditTable) -> EditRecord:
        return EditRecord(
            id=row.id,
            ticket_id=row.ticket_id,
            user_id=row.user_id,
            description=row.description,
            old_status=TicketStatus(row.old_status),
            new_status=TicketStatus(row.new_status),
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_notification(row: NotificationTable) -> NotificationRecord:
        return NotificationRecord(
            id=row.id,
            ticket_id=row.ticket_id,
            edit_id=row.edit_id,
            user_id=row.user_id,
            message=row.message,
            is_read=row.is_read,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_user(row: UserTable) -> User:
        return User(id=row.id, username=row.username, role=Role(row.role), is_active=row.is_active)


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
