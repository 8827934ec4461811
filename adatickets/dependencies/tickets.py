from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from adatickets.dependencies.auth import AuthenticatedUser, role_required
from adatickets.lifecycle import Role
from adatickets.tickets.service import TicketService

require_user = role_required(Role.USER)
require_operator = role_required(Role.OPERATOR)
require_admin = role_required(Role.ADMIN)

SignedInUser = Annotated[AuthenticatedUser, Depends(require_user)]
OperatorUser = Annotated[AuthenticatedUser, Depends(require_operator)]
AdminUser = Annotated[AuthenticatedUser, Depends(require_admin)]


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
