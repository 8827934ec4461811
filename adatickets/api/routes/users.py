from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from adatickets.api.errors import DOMAIN_ERRORS, to_http_exception
from adatickets.api.routes.platforms import PlatformModel
from adatickets.dependencies.tickets import AdminUser, SignedInUser, TicketServiceDep
from adatickets.lifecycle import Role
from adatickets.tickets.models import User

router = APIRouter(prefix="/users", tags=["users"])


class UserModel(BaseModel):
    id: str
    username: str
    role: Role
    is_active: bool

    @classmethod
    def from_entity(cls, entity: User) -> "UserModel":
        return cls(id=entity.id, username=entity.username, role=entity.role, is_active=entity.is_active)


class UserCreateRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    role: Role = Role.USER
    id: str | None = None


class UserUpdateRequest(BaseModel):
    role: Role | None = None
    is_active: bool | None = None


@router.get("", response_model=list[UserModel])
async def list_users(service: TicketServiceDep, user: AdminUser) -> list[UserModel]:
    users = await service.list_users()
    return [UserModel.from_entity(entity) for entity in users]


@router.post("", response_model=UserModel, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreateRequest, service: TicketServiceDep, user: AdminUser) -> UserModel:
    try:
        created = await service.create_user(username=payload.username, role=payload.role, user_id=payload.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return UserModel.from_entity(created)


@router.get("/me/platforms", response_model=list[PlatformModel], summary="Platforms the caller prefers")
async def list_my_platforms(service: TicketServiceDep, user: SignedInUser) -> list[PlatformModel]:
    platforms = await service.list_preferred_platforms(user.user_id)
    return [PlatformModel.from_entity(platform) for platform in platforms]


@router.patch("/{user_id}", response_model=UserModel, summary="Change a user's role or active flag")
async def update_user(
    user_id: str,
    payload: UserUpdateRequest,
    service: TicketServiceDep,
    user: AdminUser,
) -> UserModel:
    if not payload.model_dump(exclude_none=True):
        raise HTTPException(status_code=422, detail="No fields to update")
    try:
        updated = await service.update_user(
            user_id, actor_id=user.user_id, role=payload.role, is_active=payload.is_active
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return UserModel.from_entity(updated)
