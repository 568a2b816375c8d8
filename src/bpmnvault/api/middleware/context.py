from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bpmnvault.config import get_settings
from bpmnvault.context import user_id_var


class UserContextMiddleware(BaseHTTPMiddleware):
    """Copies the authenticated user id header into ``user_id_var``."""

    async def dispatch(self, request: Request, call_next) -> Response:
        settings = get_settings()
        user_id = request.headers.get(settings.USER_HEADER)

        token = None
        # Respect any upstream middleware that already established the user.
        if user_id_var.get() is None:
            token = user_id_var.set(user_id)
        try:
            return await call_next(request)
        finally:
            if token is not None:
                user_id_var.reset(token)
