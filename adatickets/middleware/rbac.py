"""Resolve the caller once per request so routes and dependencies share it."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from adatickets.dependencies.auth import bearer_token, resolve_user_from_token

logger = logging.getLogger(__name__)


class RBACMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            user = resolve_user_from_token(bearer_token(request.headers.get("Authorization")))
        except HTTPException as exc:
            logger.debug("Rejected credentials on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

        request.state.user = user
        trace.get_current_span().set_attribute("enduser.id", user.user_id)
        return await call_next(request)
