from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from adatickets.api.errors import DOMAIN_ERRORS, to_http_exception
from adatickets.dependencies.tickets import OperatorUser, SignedInUser, TicketServiceDep
from adatickets.lifecycle import EditRecord, TicketStatus
from adatickets.tickets.models import Priority, Reply, Ticket, TicketAggregate, TicketType

router = APIRouter(prefix="/tickets", tags=["tickets"])


class ReplyModel(BaseModel):
    id: str
    author_user_id: str
    message: str
    created_at: str

    @classmethod
    def from_entity(cls, entity: Reply) -> "ReplyModel":
        return cls(
            id=entity.id,
            author_user_id=entity.author_user_id,
            message=entity.message,
            created_at=entity.created_at.isoformat(),
        )


class EditModel(BaseModel):
    id: str
    user_id: str
    description: str
    old_status: TicketStatus
    new_status: TicketStatus
    created_at: str

    @classmethod
    def from_entity(cls, entity: EditRecord) -> "EditModel":
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            description=entity.description,
            old_status=entity.old_status,
            new_status=entity.new_status,
            created_at=entity.created_at.isoformat(),
        )


class TicketModel(BaseModel):
    id: str
    type: TicketType
    title: str
    description: str
    priority: Priority
    status: TicketStatus
    platform_id: str
    creator_user_id: str
    operator_user_id: str | None = None
    version: int
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, ticket: Ticket) -> "TicketModel":
        return cls(
            id=ticket.id,
            type=ticket.type,
            title=ticket.title,
            description=ticket.description,
            priority=ticket.priority,
            status=ticket.status,
            platform_id=ticket.platform_id,
            creator_user_id=ticket.creator_user_id,
            operator_user_id=ticket.operator_user_id,
            version=ticket.version,
            created_at=ticket.created_at.isoformat(),
            updated_at=ticket.updated_at.isoformat(),
        )


class TicketDetailModel(TicketModel):
    replies: list[ReplyModel] = Field(default_factory=list)
    edits: list[EditModel] = Field(default_factory=list)
    notified_user_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_aggregate(cls, aggregate: TicketAggregate) -> "TicketDetailModel":
        base = TicketModel.from_entity(aggregate.ticket)
        return cls(
            **base.model_dump(),
            replies=[ReplyModel.from_entity(reply) for reply in aggregate.replies],
            edits=[EditModel.from_entity(edit) for edit in aggregate.edits],
            notified_user_ids=[notification.user_id for notification in aggregate.notifications],
        )


class TicketCreateRequest(BaseModel):
    platform_id: str
    title: str = Field(min_length=1, max_length=50)
    description: str = Field(min_length=1)
    type: TicketType = TicketType.BUG
    priority: Priority = Priority.LOW


class TicketUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, min_length=1)
    type: TicketType | None = None
    priority: Priority | None = None


class AssignRequest(BaseModel):
    operator_user_id: str | None = None


class ReassignRequest(BaseModel):
    operator_user_id: str


class ReplyCreateRequest(BaseModel):
    message: str = Field(min_length=1)


@router.get("", response_model=list[TicketModel], summary="List existing tickets")
async def list_tickets(
    service: TicketServiceDep,
    user: SignedInUser,
    status_filter: Annotated[TicketStatus | None, Query(alias="status")] = None,
) -> list[TicketModel]:
    tickets = await service.list_tickets(status=status_filter)
    return [TicketModel.from_entity(ticket) for ticket in tickets]


@router.post("", response_model=TicketDetailModel, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    user: SignedInUser,
) -> TicketDetailModel:
    try:
        aggregate = await service.create_ticket(
            creator_user_id=user.user_id,
            platform_id=payload.platform_id,
            title=payload.title,
            description=payload.description,
            ticket_type=payload.type,
            priority=payload.priority,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.from_aggregate(aggregate)


@router.get("/{ticket_id}", response_model=TicketDetailModel)
async def get_ticket(ticket_id: str, service: TicketServiceDep, user: SignedInUser) -> TicketDetailModel:
    try:
        aggregate = await service.get_ticket(ticket_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.from_aggregate(aggregate)


@router.patch("/{ticket_id}", response_model=TicketDetailModel)
async def edit_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
    user: SignedInUser,
) -> TicketDetailModel:
    if not payload.model_dump(exclude_none=True):
        raise HTTPException(status_code=422, detail="No fields to update")
    try:
        aggregate = await service.edit_ticket(
            ticket_id,
            actor_id=user.user_id,
            title=payload.title,
            description=payload.description,
            priority=payload.priority,
            ticket_type=payload.type,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.from_aggregate(aggregate)


@router.post("/{ticket_id}/assign", response_model=TicketDetailModel)
async def assign_ticket(
    ticket_id: str,
    payload: AssignRequest,
    service: TicketServiceDep,
    user: OperatorUser,
) -> TicketDetailModel:
    try:
        aggregate = await service.assign(ticket_id, actor_id=user.user_id, operator_user_id=payload.operator_user_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.from_aggregate(aggregate)


@router.post("/{ticket_id}/reassign", response_model=TicketDetailModel)
async def reassign_ticket(
    ticket_id: str,
    payload: ReassignRequest,
    service: TicketServiceDep,
    user: OperatorUser,
) -> TicketDetailModel:
    try:
        aggregate = await service.reassign(ticket_id, actor_id=user.user_id, operator_user_id=payload.operator_user_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.from_aggregate(aggregate)


@router.post("/{ticket_id}/replies", response_model=TicketDetailModel, status_code=status.HTTP_201_CREATED)
async def reply_to_ticket(
    ticket_id: str,
    payload: ReplyCreateRequest,
    service: TicketServiceDep,
    user: SignedInUser,
) -> TicketDetailModel:
    try:
        aggregate = await service.reply(ticket_id, actor_id=user.user_id, message=payload.message)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.from_aggregate(aggregate)


@router.post("/{ticket_id}/close", response_model=TicketDetailModel)
async def close_ticket(ticket_id: str, service: TicketServiceDep, user: OperatorUser) -> TicketDetailModel:
    try:
        aggregate = await service.close(ticket_id, actor_id=user.user_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.from_aggregate(aggregate)


@router.get("/{ticket_id}/edits", response_model=list[EditModel])
async def list_ticket_edits(ticket_id: str, service: TicketServiceDep, user: SignedInUser) -> list[EditModel]:
    try:
        edits = await service.list_edits(ticket_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return [EditModel.from_entity(edit) for edit in edits]


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(ticket_id: str, service: TicketServiceDep, user: OperatorUser) -> None:
    try:
        await service.delete_ticket(ticket_id, actor_id=user.user_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
