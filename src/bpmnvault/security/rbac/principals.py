from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Union

from sqlalchemy.orm import Session

from bpmnvault.exceptions import NotFoundError
from bpmnvault.security.rbac.models import (
    Group,
    Role,
    User,
    rbac_group_members,
    rbac_user_roles,
)
from bpmnvault.security.rbac.role_graph import RoleGraph


@dataclass(frozen=True)
class PrincipalSet:
    """Identities a user may act as for one authorization decision."""

    user_id: int
    group_ids: FrozenSet[int] = field(default_factory=frozenset)
    role_ids: FrozenSet[int] = field(default_factory=frozenset)
    role_names: FrozenSet[str] = field(default_factory=frozenset)
    direct_role_names: FrozenSet[str] = field(default_factory=frozenset)


class PrincipalResolver:
    """
    Expands a user into {user id, active group ids, hierarchy-closed role ids}.

    Nothing is cached: membership can change between requests, so every
    authorization check resolves again from the current committed state.
    """

    def __init__(self, session: Session, role_graph: RoleGraph | None = None):
        self.session = session
        self.role_graph = role_graph or RoleGraph(session)

    def get_user(self, user: Union[User, int]) -> User:
        if isinstance(user, User):
            return user
        found = self.session.get(User, user)
        if not found:
            raise NotFoundError("User", user)
        return found

    def direct_role_ids(self, user_id: int) -> FrozenSet[int]:
        rows = (
            self.session.query(rbac_user_roles.c.role_id)
            .filter(rbac_user_roles.c.user_id == user_id)
            .all()
        )
        return frozenset(role_id for (role_id,) in rows)

    def active_group_ids(self, user_id: int) -> FrozenSet[int]:
        rows = (
            self.session.query(Group.id)
            .join(rbac_group_members, rbac_group_members.c.group_id == Group.id)
            .filter(
                rbac_group_members.c.user_id == user_id,
                Group.is_active.is_(True),
            )
            .all()
        )
        return frozenset(group_id for (group_id,) in rows)

    def _role_names(self, role_ids) -> FrozenSet[str]:
        if not role_ids:
            return frozenset()
        rows = self.session.query(Role.name).filter(Role.id.in_(list(role_ids))).all()
        return frozenset(name for (name,) in rows)

    def resolve(self, user: Union[User, int]) -> PrincipalSet:
        user = self.get_user(user)
        direct = self.direct_role_ids(user.id)
        closure = frozenset(self.role_graph.reachable_from_many(direct))
        return PrincipalSet(
            user_id=user.id,
            group_ids=self.active_group_ids(user.id),
            role_ids=closure,
            role_names=self._role_names(closure),
            direct_role_names=self._role_names(direct),
        )
