from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Sequence

from opentelemetry import trace

from adatickets.lifecycle import (
    Actor,
    EditRecord,
    NoAvailableOperatorError,
    NotificationRecord,
    OperatorPool,
    Role,
    SideEffectEmitter,
    SideEffects,
    TicketEvent,
    TicketLifecycle,
    TicketSnapshot,
    TicketStatus,
    TransitionError,
    TransitionOutcome,
    TransitionRequest,
    UnauthorizedTransitionError,
)
from adatickets.metrics import MetricsRegistry, metrics_registry as default_metrics_registry, register_default_metrics

from .errors import (
    NotificationNotFoundError,
    PermissionDeniedError,
    PlatformNotFoundError,
    TicketConflictError,
    TicketNotFoundError,
    UserNotFoundError,
)
from .models import Platform, Priority, Reply, Ticket, TicketAggregate, TicketType, User
from .repository import TicketRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TicketService:
    """High level orchestration for ticket lifecycle operations."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        emitter: SideEffectEmitter | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._emitter = emitter or SideEffectEmitter()
        self._metrics = metrics or default_metrics_registry
        register_default_metrics(self._metrics)

    async def ensure_schema(self) -> None:
        await self._repository.ensure_schema()

    async def create_ticket(
        self,
        *,
        creator_user_id: str,
        platform_id: str,
        title: str,
        description: str,
        ticket_type: TicketType = TicketType.BUG,
        priority: Priority = Priority.LOW,
    ) -> TicketAggregate:
        actor = await self._resolve_actor(creator_user_id)
        if await self._repository.get_platform(platform_id) is None:
            raise PlatformNotFoundError(f"Platform {platform_id} not found")

        now = datetime.now(timezone.utc)
        ticket = Ticket(
            id=str(uuid.uuid4()),
            type=ticket_type,
            title=title,
            description=description,
            priority=priority,
            status=TicketLifecycle.initial_state(),
            platform_id=platform_id,
            creator_user_id=actor.user_id,
            operator_user_id=None,
            created_at=now,
            updated_at=now,
        )
        pool = await self._operator_pool(platform_id)
        snapshot = ticket.snapshot()

        created = TicketLifecycle.propose_creation(snapshot, actor, now=now)
        effects = [self._emit(created, snapshot, pool)]

        try:
            assigned = TicketLifecycle.propose_transition(
                snapshot, TransitionRequest(TicketEvent.ASSIGN), actor, pool, now=now
            )
        except NoAvailableOperatorError:
            logger.warning("No operator available for ticket %s on platform %s", ticket.id, platform_id)
            self._metrics.counter("ticket_transition_rejections_total").inc(
                labels={"reason": NoAvailableOperatorError.__name__}
            )
        else:
            effects.append(self._emit(assigned, snapshot, pool))
            ticket.status = assigned.new_status
            ticket.operator_user_id = assigned.new_operator

        edits = [effect.edit for effect in effects]
        notifications = [notification for effect in effects for notification in effect.notifications]
        await self._repository.create_ticket(ticket, edits, notifications)
        logger.info("Ticket %s created by %s with status %s", ticket.id, actor.user_id, ticket.status.value)
        return TicketAggregate(ticket=ticket, replies=[], edits=edits, notifications=notifications)

    async def get_ticket(self, ticket_id: str) -> TicketAggregate:
        aggregate = await self._repository.get_ticket_aggregate(ticket_id)
        if aggregate is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return aggregate

    async def list_tickets(self, *, status: TicketStatus | None = None) -> list[Ticket]:
        return await self._repository.list_tickets(status=status)

    async def delete_ticket(self, ticket_id: str, *, actor_id: str) -> None:
        actor = await self._resolve_actor(actor_id)
        if not actor.is_staff:
            raise PermissionDeniedError("Only operators or admins can delete tickets")
        deleted = await self._repository.delete_ticket(ticket_id)
        if not deleted:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        logger.info("Ticket %s deleted by %s", ticket_id, actor_id)

    async def assign(self, ticket_id: str, *, actor_id: str, operator_user_id: str | None = None) -> TicketAggregate:
        return await self._transition(
            ticket_id, TransitionRequest(TicketEvent.ASSIGN, operator_user_id), actor_id=actor_id
        )

    async def reassign(self, ticket_id: str, *, actor_id: str, operator_user_id: str) -> TicketAggregate:
        return await self._transition(
            ticket_id, TransitionRequest(TicketEvent.REASSIGN, operator_user_id), actor_id=actor_id
        )

    async def close(self, ticket_id: str, *, actor_id: str) -> TicketAggregate:
        return await self._transition(ticket_id, TransitionRequest(TicketEvent.CLOSE), actor_id=actor_id)

    async def reply(self, ticket_id: str, *, actor_id: str, message: str) -> TicketAggregate:
        return await self._transition(
            ticket_id, TransitionRequest(TicketEvent.REPLY), actor_id=actor_id, reply_message=message
        )

    async def edit_ticket(
        self,
        ticket_id: str,
        *,
        actor_id: str,
        title: str | None = None,
        description: str | None = None,
        priority: Priority | None = None,
        ticket_type: TicketType | None = None,
    ) -> TicketAggregate:
        changes = {
            key: value
            for key, value in (
                ("title", title),
                ("description", description),
                ("priority", priority),
                ("type", ticket_type),
            )
            if value is not None
        }
        return await self._transition(
            ticket_id, TransitionRequest(TicketEvent.EDIT), actor_id=actor_id, changes=changes
        )

    async def list_edits(self, ticket_id: str) -> list[EditRecord]:
        if await self._repository.get_ticket(ticket_id) is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return await self._repository.list_edits(ticket_id)

    async def list_notifications(self, user_id: str, *, unread_only: bool = False) -> list[NotificationRecord]:
        return await self._repository.list_notifications(user_id, unread_only=unread_only)

    async def mark_notification_read(self, notification_id: str, *, user_id: str) -> NotificationRecord:
        notification = await self._repository.get_notification(notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        if notification.is_read:
            return notification
        updated = await self._repository.mark_notification_read(notification_id)
        if updated is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return updated

    async def create_user(self, *, username: str, role: Role, user_id: str | None = None) -> User:
        user = User(id=user_id or str(uuid.uuid4()), username=username, role=role)
        return await self._repository.create_user(user)

    async def list_users(self) -> list[User]:
        return await self._repository.list_users()

    async def update_user(
        self,
        user_id: str,
        *,
        actor_id: str,
        role: Role | None = None,
        is_active: bool | None = None,
    ) -> User:
        """Change a user's role or deactivate them; only admins may do this."""

        actor = await self._resolve_actor(actor_id)
        if actor.role != Role.ADMIN:
            raise PermissionDeniedError("Only admins can change users")
        updated = await self._repository.update_user(user_id, role=role, is_active=is_active)
        if updated is None:
            raise UserNotFoundError(f"User {user_id} not found")
        logger.info(
            "User %s updated by %s: role=%s active=%s", user_id, actor_id, updated.role.value, updated.is_active
        )
        return updated

    async def list_platforms(self) -> list[Platform]:
        return await self._repository.list_platforms()

    async def create_platform(self, *, name: str, repository_url: str) -> Platform:
        platform = Platform(id=str(uuid.uuid4()), name=name, repository_url=repository_url)
        return await self._repository.create_platform(platform)

    async def list_preferred_platforms(self, user_id: str) -> list[Platform]:
        return await self._repository.list_preferred_platforms(user_id)

    async def set_platform_preference(self, platform_id: str, *, actor_id: str, preferred: bool) -> None:
        actor = await self._resolve_actor(actor_id)
        if not actor.is_staff:
            raise PermissionDeniedError("Only operators or admins can prefer platforms")
        if await self._repository.get_platform(platform_id) is None:
            raise PlatformNotFoundError(f"Platform {platform_id} not found")
        if preferred:
            await self._repository.add_preference(actor.user_id, platform_id)
        else:
            await self._repository.remove_preference(actor.user_id, platform_id)

    async def _transition(
        self,
        ticket_id: str,
        request: TransitionRequest,
        *,
        actor_id: str,
        reply_message: str | None = None,
        changes: dict[str, object] | None = None,
    ) -> TicketAggregate:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        actor = await self._resolve_actor(actor_id)
        pool = await self._operator_pool(ticket.platform_id)
        snapshot = ticket.snapshot()

        with tracer.start_as_current_span("ticket.transition") as span:
            span.set_attribute("ticket.id", ticket_id)
            span.set_attribute("ticket.event", request.event.value)
            with self._metrics.time_distribution("ticket_transition_duration_seconds"):
                try:
                    outcome = TicketLifecycle.propose_transition(snapshot, request, actor, pool)
                except TransitionError as exc:
                    self._metrics.counter("ticket_transition_rejections_total").inc(
                        labels={"reason": type(exc).__name__}
                    )
                    logger.info("Rejected %s on ticket %s by %s: %s", request.event.value, ticket_id, actor_id, exc)
                    raise
                effects = self._emit(outcome, snapshot, pool)

            updated = replace(
                ticket,
                status=outcome.new_status,
                operator_user_id=outcome.new_operator,
                updated_at=outcome.timestamp,
                **(changes or {}),
            )
            reply = None
            if reply_message is not None:
                reply = Reply(
                    id=str(uuid.uuid4()),
                    ticket_id=ticket_id,
                    author_user_id=actor.user_id,
                    message=reply_message,
                    created_at=outcome.timestamp,
                )
            stored = await self._repository.apply_transition(
                updated,
                expected_version=ticket.version,
                edits=[effects.edit],
                notifications=effects.notifications,
                reply=reply,
            )
            if stored is None:
                raise TicketConflictError(f"Ticket {ticket_id} was modified concurrently")
            span.set_attribute("ticket.transition", outcome.kind.value)

        logger.info(
            "Ticket %s %s by %s: %s -> %s",
            ticket_id,
            outcome.kind.value,
            actor_id,
            outcome.old_status.value,
            outcome.new_status.value,
        )
        return TicketAggregate(
            ticket=stored,
            replies=[reply] if reply is not None else [],
            edits=[effects.edit],
            notifications=list(effects.notifications),
        )

    def _emit(self, outcome: TransitionOutcome, snapshot: TicketSnapshot, pool: OperatorPool) -> SideEffects:
        effects = self._emitter.emit(
            outcome,
            snapshot,
            watchers=pool.candidates,
            operators=sorted(pool.active_operators),
        )
        labels = {"kind": outcome.kind.value}
        self._metrics.counter("ticket_transitions_total").inc(labels=labels)
        self._metrics.counter("ticket_notifications_total").inc(float(len(effects.notifications)), labels=labels)
        return effects

    async def _operator_pool(self, platform_id: str) -> OperatorPool:
        candidates: Sequence[str] = await self._repository.list_preferring_operators(platform_id)
        operators = await self._repository.list_active_operators()
        return OperatorPool(candidates=tuple(candidates), active_operators=frozenset(operators))

    async def _resolve_actor(self, user_id: str) -> Actor:
        user = await self._repository.get_user(user_id)
        if user is None or not user.is_active:
            raise UnauthorizedTransitionError(f"Unknown or inactive user {user_id}")
        return Actor(user_id=user.id, role=user.role)
