from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional


user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
username_var: ContextVar[Optional[str]] = ContextVar("username", default=None)


@dataclass(frozen=True)
class RequestContext:
    user_id: Optional[str]
    username: Optional[str]


def get_request_context() -> RequestContext:
    return RequestContext(
        user_id=user_id_var.get(),
        username=username_var.get(),
    )


def get_acting_username(default: str = "system") -> str:
    """Username recorded in audit columns when the caller does not pass one."""
    return username_var.get() or default
