"""
RBAC Models - roles, role hierarchy edges, users and groups.

Entities reference each other by id only; every traversal goes through an
explicit query in the services (see role_graph.py, principals.py).
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)

from bpmnvault.models.base import Base

logger = logging.getLogger(__name__)

rbac_metadata = Base.metadata

rbac_user_roles = Table(
    "rbac_user_roles",
    rbac_metadata,
    Column("user_id", Integer, ForeignKey("rbac_users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("rbac_roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime, default=datetime.now),
    extend_existing=True,
)

rbac_group_members = Table(
    "rbac_group_members",
    rbac_metadata,
    Column("group_id", Integer, ForeignKey("rbac_groups.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("rbac_users.id", ondelete="CASCADE"), primary_key=True),
    Column("joined_at", DateTime, default=datetime.now),
    extend_existing=True,
)


class Role(Base):
    __tablename__ = "rbac_roles"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    display_name = Column(String(200))
    description = Column(String(500))

    created_at = Column(DateTime, default=datetime.now)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Role id={self.id} name={self.name!r}>"


class RoleHierarchy(Base):
    """
    Directed edge: holders of the parent role also act as the child role.

    Edges are soft-deleted through ``is_active`` and never hard-deleted.
    """

    __tablename__ = "rbac_role_hierarchy"

    id = Column(Integer, primary_key=True)
    parent_role_id = Column(
        Integer, ForeignKey("rbac_roles.id"), nullable=False, index=True
    )
    child_role_id = Column(
        Integer, ForeignKey("rbac_roles.id"), nullable=False, index=True
    )
    hierarchy_level = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.now)
    created_by = Column(String(100))

    __table_args__ = (
        Index("ix_rbac_role_hierarchy_pair", "parent_role_id", "child_role_id"),
    )


class User(Base):
    __tablename__ = "rbac_users"

    id = Column(Integer, primary_key=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(200))
    first_name = Column(String(100))
    last_name = Column(String(100))

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.username


class Group(Base):
    __tablename__ = "rbac_groups"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)

    created_by = Column(String(100))
    created_at = Column(DateTime, default=datetime.now)
