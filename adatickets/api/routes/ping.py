from fastapi import APIRouter

from adatickets.dependencies.auth import CurrentUser

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health check")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/whoami", summary="Echo the resolved caller")
async def whoami(user: CurrentUser) -> dict[str, object]:
    return {"user_id": user.user_id, "roles": [role.value for role in user.roles]}
