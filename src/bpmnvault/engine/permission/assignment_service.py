"""
Assignment Service
CRUD over resource assignments with duplicate prevention.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from bpmnvault.engine.kinds import FILE, ResourceKind
from bpmnvault.engine.permission.models import Assignment
from bpmnvault.exceptions import (
    DuplicateAssignmentError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from bpmnvault.security.rbac.models import Group, Role, User
from bpmnvault.security.rbac.permissions import (
    PermissionLevel,
    PrincipalType,
    is_system_admin,
)
from bpmnvault.security.rbac.principals import PrincipalSet

logger = logging.getLogger(__name__)

_PRINCIPAL_COLUMNS = {
    PrincipalType.USER: ("user_id", User),
    PrincipalType.GROUP: ("group_id", Group),
    PrincipalType.ROLE: ("role_id", Role),
}


def principal_clause(principals: PrincipalSet):
    """SQL condition matching assignments held by any identity in ``principals``."""
    clauses = [
        and_(
            Assignment.principal_type == PrincipalType.USER.value,
            Assignment.user_id == principals.user_id,
        )
    ]
    if principals.group_ids:
        clauses.append(
            and_(
                Assignment.principal_type == PrincipalType.GROUP.value,
                Assignment.group_id.in_(sorted(principals.group_ids)),
            )
        )
    if principals.role_ids:
        clauses.append(
            and_(
                Assignment.principal_type == PrincipalType.ROLE.value,
                Assignment.role_id.in_(sorted(principals.role_ids)),
            )
        )
    return or_(*clauses)


def _as_level(level) -> PermissionLevel:
    try:
        return PermissionLevel(level)
    except ValueError:
        raise ValidationError(f"Invalid permission level: {level}", field="permission_level")


def _as_principal_type(principal_type) -> PrincipalType:
    try:
        return PrincipalType(principal_type)
    except ValueError:
        raise ValidationError(f"Invalid principal type: {principal_type}", field="principal_type")


class AssignmentStore:
    def __init__(self, session: Session, kind: ResourceKind = FILE):
        self.session = session
        self.kind = kind

    def _ensure_resource(self, resource_id: int) -> None:
        if not self.session.get(self.kind.model, resource_id):
            raise NotFoundError(self.kind.label, resource_id)

    def _active_query(self):
        return self.session.query(Assignment).filter(
            Assignment.resource_kind == self.kind.name,
            Assignment.is_active.is_(True),
        )

    def find_active(
        self, resource_id: int, principal_type, principal_id: int
    ) -> Optional[Assignment]:
        ptype = _as_principal_type(principal_type)
        column_name, _ = _PRINCIPAL_COLUMNS[ptype]
        return (
            self._active_query()
            .filter(
                Assignment.resource_id == resource_id,
                Assignment.principal_type == ptype.value,
                getattr(Assignment, column_name) == principal_id,
            )
            .first()
        )

    def assign(
        self,
        resource_id: int,
        principal_type,
        principal_id: int,
        level,
        assigned_by: Optional[str],
        notes: Optional[str] = None,
    ) -> Assignment:
        ptype = _as_principal_type(principal_type)
        level = _as_level(level)
        self._ensure_resource(resource_id)

        column_name, principal_model = _PRINCIPAL_COLUMNS[ptype]
        if not self.session.get(principal_model, principal_id):
            raise NotFoundError(ptype.value.capitalize(), principal_id)

        if self.find_active(resource_id, ptype, principal_id):
            raise DuplicateAssignmentError(
                f"{self.kind.label} {resource_id} is already assigned to "
                f"{ptype.value} {principal_id}",
                resource_id=resource_id,
                principal_type=ptype.value,
                principal_id=principal_id,
            )

        assignment = Assignment(
            resource_kind=self.kind.name,
            resource_id=resource_id,
            principal_type=ptype.value,
            permission_level=level.value,
            is_active=True,
            assigned_by=assigned_by,
            assigned_at=datetime.utcnow(),
            notes=notes,
        )
        setattr(assignment, column_name, principal_id)
        self.session.add(assignment)
        self.session.flush()
        logger.info(
            f"Assigned {self.kind.name} {resource_id} to {ptype.value} {principal_id} "
            f"at {level.value} (by {assigned_by})"
        )
        return assignment

    def get(self, assignment_id: int) -> Assignment:
        assignment = self.session.get(Assignment, assignment_id)
        if not assignment or assignment.resource_kind != self.kind.name:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    def revoke(self, assignment_id: int) -> Assignment:
        assignment = self.get(assignment_id)
        if assignment.is_active:
            assignment.is_active = False
            self.session.flush()
            logger.info(f"Revoked assignment {assignment_id}")
        return assignment

    def revoke_all(self, resource_id: int) -> int:
        count = (
            self._active_query()
            .filter(Assignment.resource_id == resource_id)
            .update({Assignment.is_active: False}, synchronize_session="fetch")
        )
        self.session.flush()
        if count:
            logger.info(f"Revoked {count} assignments on {self.kind.name} {resource_id}")
        return count

    def update_level(self, assignment_id: int, new_level) -> Assignment:
        level = _as_level(new_level)
        assignment = self.get(assignment_id)
        if not assignment.is_active:
            raise InvalidStateError(
                f"Assignment {assignment_id} is not active", assignment_id=assignment_id
            )
        assignment.permission_level = level.value
        self.session.flush()
        return assignment

    def list_for_resource(self, resource_id: int) -> List[Assignment]:
        self._ensure_resource(resource_id)
        return (
            self._active_query()
            .filter(Assignment.resource_id == resource_id)
            .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
            .all()
        )

    def list_by_assigner(self, assigned_by: str) -> List[Assignment]:
        return (
            self._active_query()
            .filter(Assignment.assigned_by == assigned_by)
            .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
            .all()
        )

    def list_accessible_resources(self, principals: PrincipalSet) -> list:
        model = self.kind.model
        query = self.session.query(model)
        if not is_system_admin(principals):
            resource_ids = select(Assignment.resource_id).where(
                Assignment.resource_kind == self.kind.name,
                Assignment.is_active.is_(True),
                principal_clause(principals),
            )
            query = query.filter(model.id.in_(resource_ids))
        return query.order_by(model.id.asc()).all()

    def count_by_type(self) -> Dict[str, int]:
        rows = (
            self._active_query()
            .with_entities(Assignment.principal_type, func.count(Assignment.id))
            .group_by(Assignment.principal_type)
            .all()
        )
        counts = {ptype.value: 0 for ptype in PrincipalType}
        counts.update({ptype: count for ptype, count in rows})
        return counts
