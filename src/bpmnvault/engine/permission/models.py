from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)

from bpmnvault.models.base import Base
from bpmnvault.security.rbac.permissions import PermissionLevel, PrincipalType


class Assignment(Base):
    """
    Grants one principal (user, group or role) a permission level on a resource.

    Exactly one of user_id / group_id / role_id is set, matching principal_type.
    Rows are soft-deleted via is_active so the grant history survives.
    """

    __tablename__ = "meta_assignments"

    id = Column(Integer, primary_key=True)
    resource_kind = Column(String(20), nullable=False)
    resource_id = Column(Integer, nullable=False)

    principal_type = Column(String(10), nullable=False)
    user_id = Column(Integer, ForeignKey("rbac_users.id"), nullable=True)
    group_id = Column(Integer, ForeignKey("rbac_groups.id"), nullable=True)
    role_id = Column(Integer, ForeignKey("rbac_roles.id"), nullable=True)

    permission_level = Column(String(10), nullable=False, default=PermissionLevel.VIEW.value)
    is_active = Column(Boolean, default=True, nullable=False)

    assigned_by = Column(String(100))
    assigned_at = Column(DateTime, default=datetime.utcnow)
    notes = Column(String(500))

    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN user_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN group_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN role_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_assignment_single_principal",
        ),
        Index("ix_assignments_resource", "resource_kind", "resource_id", "is_active"),
        Index("ix_assignments_user", "user_id"),
        Index("ix_assignments_group", "group_id"),
        Index("ix_assignments_role", "role_id"),
    )

    @property
    def level(self) -> PermissionLevel:
        return PermissionLevel(self.permission_level)

    @property
    def principal_id(self) -> int:
        if self.principal_type == PrincipalType.USER.value:
            return self.user_id
        if self.principal_type == PrincipalType.GROUP.value:
            return self.group_id
        return self.role_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_kind": self.resource_kind,
            "resource_id": self.resource_id,
            "principal_type": self.principal_type,
            "principal_id": self.principal_id,
            "permission_level": self.permission_level,
            "is_active": self.is_active,
            "assigned_by": self.assigned_by,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
            "notes": self.notes,
        }
