from __future__ import annotations

from typing import Callable, Union

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from bpmnvault.context import user_id_var
from bpmnvault.database import get_db
from bpmnvault.engine.kinds import ResourceKind, get_kind
from bpmnvault.engine.permission.access import AccessResolver
from bpmnvault.security.rbac.models import User
from bpmnvault.security.rbac.permissions import PermissionLevel
from bpmnvault.security.rbac.principals import PrincipalResolver, PrincipalSet


def get_current_user(db: Session = Depends(get_db)) -> User:
    raw = user_id_var.get()
    if not raw:
        raise HTTPException(status_code=401, detail="Missing user identity")
    try:
        user_id = int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid user identity")

    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user


def get_current_principals(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PrincipalSet:
    return PrincipalResolver(db).resolve(user)


def require_resource_level(
    kind: Union[ResourceKind, str], level: Union[PermissionLevel, str]
) -> Callable[..., PermissionLevel]:
    """
    Dependency factory guarding routes with a ``resource_id`` path parameter.

    The dependency returns the caller's effective level; denial surfaces as
    PermissionDeniedError (403) and an unknown resource as NotFoundError (404).
    """
    resource_kind = kind if isinstance(kind, ResourceKind) else get_kind(kind)
    required = PermissionLevel(level)

    def _dependency(
        resource_id: int,
        principals: PrincipalSet = Depends(get_current_principals),
        db: Session = Depends(get_db),
    ) -> PermissionLevel:
        return AccessResolver(db, resource_kind).require(resource_id, principals, required)

    return _dependency
