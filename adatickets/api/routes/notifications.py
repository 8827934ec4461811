from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel

from adatickets.api.errors import DOMAIN_ERRORS, to_http_exception
from adatickets.dependencies.tickets import SignedInUser, TicketServiceDep
from adatickets.lifecycle import NotificationRecord

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationModel(BaseModel):
    id: str
    ticket_id: str
    edit_id: str
    message: str
    is_read: bool
    created_at: str

    @classmethod
    def from_entity(cls, entity: NotificationRecord) -> "NotificationModel":
        return cls(
            id=entity.id,
            ticket_id=entity.ticket_id,
            edit_id=entity.edit_id,
            message=entity.message,
            is_read=entity.is_read,
            created_at=entity.created_at.isoformat(),
        )


@router.get("", response_model=list[NotificationModel], summary="Notifications addressed to the caller")
async def list_notifications(
    service: TicketServiceDep,
    user: SignedInUser,
    unread: Annotated[bool, Query()] = False,
) -> list[NotificationModel]:
    notifications = await service.list_notifications(user.user_id, unread_only=unread)
    return [NotificationModel.from_entity(item) for item in notifications]


@router.post("/{notification_id}/read", response_model=NotificationModel)
async def mark_notification_read(
    notification_id: str,
    service: TicketServiceDep,
    user: SignedInUser,
) -> NotificationModel:
    try:
        notification = await service.mark_notification_read(notification_id, user_id=user.user_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return NotificationModel.from_entity(notification)
