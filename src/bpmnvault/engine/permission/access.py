"""
Access resolution for versioned resources.

Combines active assignments (by user, group or role) with the role policy in
``bpmnvault.security.rbac.permissions``: system admins bypass assignments,
and viewer-only principals are capped at VIEW.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from bpmnvault.config import Settings, get_settings
from bpmnvault.engine.kinds import FILE, ResourceKind
from bpmnvault.engine.permission.assignment_service import principal_clause
from bpmnvault.engine.permission.models import Assignment
from bpmnvault.exceptions import NotFoundError, PermissionDeniedError
from bpmnvault.security.rbac import permissions as policy
from bpmnvault.security.rbac.permissions import PermissionLevel
from bpmnvault.security.rbac.principals import PrincipalSet

logger = logging.getLogger(__name__)


class AccessResolver:
    def __init__(
        self,
        session: Session,
        kind: ResourceKind = FILE,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.kind = kind
        self.settings = settings or get_settings()

    def _ensure_resource(self, resource_id: int) -> None:
        if not self.session.get(self.kind.model, resource_id):
            raise NotFoundError(self.kind.label, resource_id)

    def _matching(self, resource_id: int, principals: PrincipalSet):
        return self.session.query(Assignment).filter(
            Assignment.resource_kind == self.kind.name,
            Assignment.resource_id == resource_id,
            Assignment.is_active.is_(True),
            principal_clause(principals),
        )

    def is_system_admin(self, principals: PrincipalSet) -> bool:
        return policy.is_system_admin(principals, self.settings)

    def is_accessible(self, resource_id: int, principals: PrincipalSet) -> bool:
        self._ensure_resource(resource_id)
        if self.is_system_admin(principals):
            return True
        return self.session.query(self._matching(resource_id, principals).exists()).scalar()

    def permission_level(self, resource_id: int, principals: PrincipalSet) -> PermissionLevel:
        """Highest level across matching active assignments, VIEW when none match."""
        self._ensure_resource(resource_id)
        if self.is_system_admin(principals):
            return PermissionLevel.ADMIN
        # Ranked in Python: SQL MAX would order the level names alphabetically.
        levels = [
            level
            for (level,) in self._matching(resource_id, principals)
            .with_entities(Assignment.permission_level)
            .all()
        ]
        return PermissionLevel.highest(levels, default=PermissionLevel.VIEW)

    def effective_level(self, resource_id: int, principals: PrincipalSet) -> PermissionLevel:
        level = self.permission_level(resource_id, principals)
        if self.is_system_admin(principals):
            return level
        return PermissionLevel.lowest(level, policy.role_ceiling(principals, self.settings))

    def can_view(self, resource_id: int, principals: PrincipalSet) -> bool:
        return self.is_accessible(resource_id, principals)

    def can_edit(self, resource_id: int, principals: PrincipalSet) -> bool:
        if not self.is_accessible(resource_id, principals):
            return False
        return self.effective_level(resource_id, principals).covers(PermissionLevel.EDIT)

    def can_assign(self, resource_id: int, principals: PrincipalSet) -> bool:
        self._ensure_resource(resource_id)
        if self.is_system_admin(principals):
            return True
        if not policy.has_modeler_entitlement(principals, self.settings):
            return False
        return self.effective_level(resource_id, principals) == PermissionLevel.ADMIN

    def require(self, resource_id: int, principals: PrincipalSet, level) -> PermissionLevel:
        """Raise PermissionDeniedError unless ``principals`` hold at least ``level``."""
        required = PermissionLevel(level)
        if not self.is_accessible(resource_id, principals):
            self._deny(resource_id, principals, required, "no assignment")
        effective = self.effective_level(resource_id, principals)
        if not effective.covers(required):
            self._deny(resource_id, principals, required, f"has {effective.value}")
        return effective

    def _deny(self, resource_id: int, principals: PrincipalSet, required: PermissionLevel, why: str):
        logger.warning(
            f"Denied {required.value} on {self.kind.name} {resource_id} "
            f"to user {principals.user_id}: {why}"
        )
        raise PermissionDeniedError(
            required.value.lower(),
            f"{self.kind.name}:{resource_id}",
            required_level=required.value,
            user_id=principals.user_id,
        )
