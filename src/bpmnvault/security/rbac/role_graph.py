"""
Role Hierarchy Graph
Closure, cycle prevention and tree view over active parent -> child edges.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set, TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from bpmnvault.config import get_settings
from bpmnvault.exceptions import (
    CycleDetectedError,
    DuplicateEdgeError,
    NotFoundError,
)
from bpmnvault.security.rbac.models import Role, RoleHierarchy

if TYPE_CHECKING:  # pragma: no cover
    from bpmnvault.security.rbac.principals import PrincipalSet

logger = logging.getLogger(__name__)

Adjacency = Dict[int, List[int]]


@dataclass
class RoleTreeNode:
    role_id: int
    name: str
    display_name: Optional[str]
    children: List["RoleTreeNode"] = field(default_factory=list)

    @classmethod
    def from_role(cls, role: Role) -> "RoleTreeNode":
        return cls(role_id=role.id, name=role.name, display_name=role.display_name)

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    @property
    def child_count(self) -> int:
        return len(self.children)

    def to_dict(self) -> dict:
        return {
            "role_id": self.role_id,
            "name": self.name,
            "display_name": self.display_name,
            "children": [child.to_dict() for child in self.children],
        }


def walk_reachable(adjacency: Adjacency, start: int, *, bound: int) -> Set[int]:
    """
    Breadth-first closure from ``start`` over ``adjacency``.

    ``start`` is only included if some path leads back to it. A node already
    visited ends that branch. ``bound`` caps the number of expansions so the
    walk terminates even on a corrupted (cyclic) edge set.
    """
    reached: Set[int] = set()
    frontier = deque(adjacency.get(start, ()))
    expansions = 0
    while frontier:
        node = frontier.popleft()
        if node in reached:
            continue
        reached.add(node)
        expansions += 1
        if expansions > bound:
            logger.warning(
                f"Role traversal from {start} hit bound {bound}; edge set may be cyclic"
            )
            break
        frontier.extend(adjacency.get(node, ()))
    return reached


class RoleGraph:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _get_role(self, role_id: int) -> Role:
        role = self.session.get(Role, role_id)
        if not role:
            raise NotFoundError("Role", role_id)
        return role

    def _active_adjacency(self) -> Adjacency:
        rows = (
            self.session.query(RoleHierarchy.parent_role_id, RoleHierarchy.child_role_id)
            .filter(RoleHierarchy.is_active.is_(True))
            .all()
        )
        adjacency: Adjacency = {}
        for parent_id, child_id in rows:
            adjacency.setdefault(parent_id, []).append(child_id)
        return adjacency

    def _role_count(self) -> int:
        return self.session.query(Role).count()

    def find_active_edge(self, parent_role_id: int, child_role_id: int) -> Optional[RoleHierarchy]:
        return (
            self.session.query(RoleHierarchy)
            .filter(
                RoleHierarchy.parent_role_id == parent_role_id,
                RoleHierarchy.child_role_id == child_role_id,
                RoleHierarchy.is_active.is_(True),
            )
            .first()
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_edge(
        self,
        parent_role_id: int,
        child_role_id: int,
        level: Optional[int] = None,
        *,
        created_by: Optional[str] = None,
    ) -> RoleHierarchy:
        parent = self._get_role(parent_role_id)
        child = self._get_role(child_role_id)

        if self.find_active_edge(parent.id, child.id):
            raise DuplicateEdgeError(
                "Hierarchy already exists between these roles",
                parent_role_id=parent.id,
                child_role_id=child.id,
            )

        if self.would_create_cycle(parent.id, child.id):
            raise CycleDetectedError(parent.id, child.id)

        edge = RoleHierarchy(
            parent_role_id=parent.id,
            child_role_id=child.id,
            hierarchy_level=level if level is not None else get_settings().DEFAULT_HIERARCHY_LEVEL,
            is_active=True,
            created_at=datetime.now(),
            created_by=created_by,
        )
        self.session.add(edge)
        self.session.flush()
        logger.info(
            f"Created role hierarchy {parent.name} -> {child.name} (edge {edge.id})"
        )
        return edge

    def deactivate_edge(self, edge_id: int) -> RoleHierarchy:
        edge = self.session.get(RoleHierarchy, edge_id)
        if not edge:
            raise NotFoundError("Role hierarchy", edge_id)
        edge.is_active = False
        self.session.flush()
        logger.info(f"Deactivated role hierarchy edge {edge_id}")
        return edge

    def update_edge_level(self, edge_id: int, level: int) -> RoleHierarchy:
        edge = self.session.get(RoleHierarchy, edge_id)
        if not edge:
            raise NotFoundError("Role hierarchy", edge_id)
        edge.hierarchy_level = level
        self.session.flush()
        return edge

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def would_create_cycle(self, parent_role_id: int, child_role_id: int) -> bool:
        """Adding parent -> child closes a cycle iff the child already reaches the parent."""
        if parent_role_id == child_role_id:
            return True
        reachable_from_child = walk_reachable(
            self._active_adjacency(), child_role_id, bound=self._role_count()
        )
        return parent_role_id in reachable_from_child

    def reachable_roles(self, role_id: int) -> Set[int]:
        return walk_reachable(self._active_adjacency(), role_id, bound=self._role_count())

    def reachable_from_many(self, role_ids) -> Set[int]:
        """Union of each role and its closure, sharing one edge load."""
        adjacency = self._active_adjacency()
        bound = self._role_count()
        result: Set[int] = set()
        for role_id in role_ids:
            result.add(role_id)
            result |= walk_reachable(adjacency, role_id, bound=bound)
        return result

    def can_reach(self, principals: "PrincipalSet", role_id: int) -> bool:
        return role_id in principals.role_ids

    def child_roles(self, role_id: int) -> List[Role]:
        return (
            self.session.query(Role)
            .join(RoleHierarchy, RoleHierarchy.child_role_id == Role.id)
            .filter(
                RoleHierarchy.parent_role_id == role_id,
                RoleHierarchy.is_active.is_(True),
            )
            .order_by(Role.name.asc())
            .all()
        )

    def parent_roles(self, role_id: int) -> List[Role]:
        return (
            self.session.query(Role)
            .join(RoleHierarchy, RoleHierarchy.parent_role_id == Role.id)
            .filter(
                RoleHierarchy.child_role_id == role_id,
                RoleHierarchy.is_active.is_(True),
            )
            .order_by(Role.name.asc())
            .all()
        )

    def list_edges(self) -> List[RoleHierarchy]:
        parent = aliased(Role)
        return (
            self.session.query(RoleHierarchy)
            .join(parent, parent.id == RoleHierarchy.parent_role_id)
            .filter(RoleHierarchy.is_active.is_(True))
            .order_by(RoleHierarchy.hierarchy_level.asc(), parent.name.asc())
            .all()
        )

    def top_level_roles(self) -> List[Role]:
        child_ids = select(RoleHierarchy.child_role_id).where(
            RoleHierarchy.is_active.is_(True)
        )
        return (
            self.session.query(Role)
            .filter(~Role.id.in_(child_ids))
            .order_by(Role.name.asc())
            .all()
        )

    def build_tree(self) -> List[RoleTreeNode]:
        roles_by_id = {role.id: role for role in self.session.query(Role).all()}
        adjacency = self._active_adjacency()
        for children in adjacency.values():
            children.sort(key=lambda rid: roles_by_id[rid].name if rid in roles_by_id else "")

        return [
            self._build_subtree(role, adjacency, roles_by_id)
            for role in self.top_level_roles()
        ]

    def _build_subtree(
        self, root_role: Role, adjacency: Adjacency, roles_by_id: Dict[int, Role]
    ) -> RoleTreeNode:
        # Visited set is per root-to-leaf path: a role may sit under several parents.
        root = RoleTreeNode.from_role(root_role)
        stack = [(root, frozenset({root_role.id}))]
        while stack:
            node, path = stack.pop()
            for child_id in adjacency.get(node.role_id, ()):
                child_role = roles_by_id.get(child_id)
                if child_role is None:
                    continue
                child_node = RoleTreeNode.from_role(child_role)
                node.children.append(child_node)
                if child_id in path:
                    continue
                stack.append((child_node, path | {child_id}))
        return root
