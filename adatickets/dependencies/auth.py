"""Bearer token authentication stub and role checks for the HTTP API.

Tokens are static and map to well-known user ids. The matching users still
have to exist in the user directory, since the ticket service resolves the
acting role from there and not from the token.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from adatickets.lifecycle import Role


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    user_id: str
    roles: tuple[Role, ...] = ()

    def has_role(self, role: Role) -> bool:
        return role in self.roles


TOKEN_USER_MAP: dict[str, AuthenticatedUser] = {
    "admin-token": AuthenticatedUser("admin", (Role.ADMIN, Role.OPERATOR, Role.USER)),
    "operator-token": AuthenticatedUser("operator", (Role.OPERATOR, Role.USER)),
    "user-token": AuthenticatedUser("user", (Role.USER,)),
}

ANONYMOUS = AuthenticatedUser(user_id="anonymous")

_INVALID_CREDENTIALS = "Invalid authentication credentials"

bearer_scheme = HTTPBearer(auto_error=False)


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization`` header value."""

    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail=_INVALID_CREDENTIALS)
    return credentials.strip() or None


def resolve_user_from_token(token: str | None) -> AuthenticatedUser:
    if token is None:
        return ANONYMOUS
    try:
        return TOKEN_USER_MAP[token]
    except KeyError:
        raise HTTPException(status_code=401, detail=_INVALID_CREDENTIALS) from None


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> AuthenticatedUser:
    cached = getattr(request.state, "user", None)
    if isinstance(cached, AuthenticatedUser):
        return cached

    user = resolve_user_from_token(credentials.credentials if credentials is not None else None)
    request.state.user = user
    return user


def role_required(role: Role) -> Callable[[AuthenticatedUser], AuthenticatedUser]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[AuthenticatedUser, Depends(get_current_user)]) -> AuthenticatedUser:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
