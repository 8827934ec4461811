from __future__ import annotations

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from adatickets.api.errors import DOMAIN_ERRORS, to_http_exception
from adatickets.dependencies.tickets import AdminUser, OperatorUser, SignedInUser, TicketServiceDep
from adatickets.tickets.models import Platform

router = APIRouter(prefix="/platforms", tags=["platforms"])


class PlatformModel(BaseModel):
    id: str
    name: str
    repository_url: str

    @classmethod
    def from_entity(cls, entity: Platform) -> "PlatformModel":
        return cls(id=entity.id, name=entity.name, repository_url=entity.repository_url)


class PlatformCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    repository_url: str = Field(min_length=1)


@router.get("", response_model=list[PlatformModel])
async def list_platforms(service: TicketServiceDep, user: SignedInUser) -> list[PlatformModel]:
    platforms = await service.list_platforms()
    return [PlatformModel.from_entity(platform) for platform in platforms]


@router.post("", response_model=PlatformModel, status_code=status.HTTP_201_CREATED)
async def create_platform(
    payload: PlatformCreateRequest,
    service: TicketServiceDep,
    user: AdminUser,
) -> PlatformModel:
    try:
        platform = await service.create_platform(name=payload.name, repository_url=payload.repository_url)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return PlatformModel.from_entity(platform)


@router.put("/{platform_id}/preference", status_code=status.HTTP_204_NO_CONTENT, summary="Prefer a platform")
async def add_platform_preference(platform_id: str, service: TicketServiceDep, user: OperatorUser) -> None:
    try:
        await service.set_platform_preference(platform_id, actor_id=user.user_id, preferred=True)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc


@router.delete("/{platform_id}/preference", status_code=status.HTTP_204_NO_CONTENT)
async def remove_platform_preference(platform_id: str, service: TicketServiceDep, user: OperatorUser) -> None:
    try:
        await service.set_platform_preference(platform_id, actor_id=user.user_id, preferred=False)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
