"""
Directory Service
Roles, users, direct role grants and group membership.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from bpmnvault.exceptions import DuplicateNameError, NotFoundError, ValidationError
from bpmnvault.security.rbac.models import (
    Group,
    Role,
    User,
    rbac_group_members,
    rbac_user_roles,
)

logger = logging.getLogger(__name__)


class DirectoryService:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Role:
        if not name or not name.strip():
            raise ValidationError("Role name is required", field="name")
        if self.get_role_by_name(name):
            raise DuplicateNameError(f"Role already exists: {name}", name=name)
        role = Role(
            name=name.strip(),
            display_name=display_name or name.strip(),
            description=description,
            created_at=datetime.now(),
        )
        self.session.add(role)
        self.session.flush()
        logger.info(f"Created role {role.name} ({role.id})")
        return role

    def get_role_by_name(self, name: str) -> Optional[Role]:
        return self.session.query(Role).filter(Role.name == name.strip()).first()

    def get_or_create_role(self, name: str, **kwargs) -> Role:
        return self.get_role_by_name(name) or self.create_role(name, **kwargs)

    def _get_role(self, role_id: int) -> Role:
        role = self.session.get(Role, role_id)
        if not role:
            raise NotFoundError("Role", role_id)
        return role

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        username: str,
        *,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        if not username or not username.strip():
            raise ValidationError("Username is required", field="username")
        if self.get_user_by_username(username):
            raise DuplicateNameError(f"User already exists: {username}", username=username)
        user = User(
            username=username.strip(),
            email=email,
            first_name=first_name,
            last_name=last_name,
            is_active=True,
        )
        self.session.add(user)
        self.session.flush()
        logger.info(f"Created user {user.username} ({user.id})")
        return user

    def get_user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.session.query(User).filter(User.username == username.strip()).first()

    def deactivate_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        user.is_active = False
        self.session.flush()
        logger.info(f"Deactivated user {user.username}")
        return user

    def grant_role(self, user_id: int, role_id: int) -> bool:
        """Give a user a direct role. Returns False when already held."""
        user = self.get_user(user_id)
        role = self._get_role(role_id)
        if self._holds_role(user.id, role.id):
            return False
        self.session.execute(
            rbac_user_roles.insert().values(
                user_id=user.id, role_id=role.id, assigned_at=datetime.now()
            )
        )
        self.session.flush()
        logger.info(f"Granted role {role.name} to {user.username}")
        return True

    def revoke_role(self, user_id: int, role_id: int) -> bool:
        result = self.session.execute(
            rbac_user_roles.delete().where(
                rbac_user_roles.c.user_id == user_id,
                rbac_user_roles.c.role_id == role_id,
            )
        )
        self.session.flush()
        if result.rowcount:
            logger.info(f"Revoked role {role_id} from user {user_id}")
        return bool(result.rowcount)

    def _holds_role(self, user_id: int, role_id: int) -> bool:
        return (
            self.session.query(rbac_user_roles)
            .filter(
                rbac_user_roles.c.user_id == user_id,
                rbac_user_roles.c.role_id == role_id,
            )
            .first()
            is not None
        )

    def direct_roles(self, user_id: int) -> List[Role]:
        return (
            self.session.query(Role)
            .join(rbac_user_roles, rbac_user_roles.c.role_id == Role.id)
            .filter(rbac_user_roles.c.user_id == user_id)
            .order_by(Role.name.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(
        self, name: str, description: Optional[str] = None, created_by: Optional[str] = None
    ) -> Group:
        if not name or not name.strip():
            raise ValidationError("Group name is required", field="name")
        existing = self.session.query(Group).filter(Group.name == name.strip()).first()
        if existing:
            raise DuplicateNameError(f"Group name already exists: {name}", name=name)
        group = Group(
            name=name.strip(),
            description=description,
            is_active=True,
            created_by=created_by,
            created_at=datetime.now(),
        )
        self.session.add(group)
        self.session.flush()
        logger.info(f"Created group {group.name} ({group.id})")
        return group

    def get_group(self, group_id: int) -> Group:
        group = self.session.get(Group, group_id)
        if not group:
            raise NotFoundError("Group", group_id)
        return group

    def update_group(
        self, group_id: int, *, name: Optional[str] = None, description: Optional[str] = None
    ) -> Group:
        group = self.get_group(group_id)
        if name and name.strip() != group.name:
            clash = (
                self.session.query(Group)
                .filter(Group.name == name.strip(), Group.id != group.id)
                .first()
            )
            if clash:
                raise DuplicateNameError(f"Group name already exists: {name}", name=name)
            group.name = name.strip()
        if description is not None:
            group.description = description
        self.session.flush()
        return group

    def deactivate_group(self, group_id: int) -> Group:
        group = self.get_group(group_id)
        group.is_active = False
        self.session.flush()
        logger.info(f"Deactivated group {group.name}")
        return group

    def is_user_in_group(self, user_id: int, group_id: int) -> bool:
        return (
            self.session.query(rbac_group_members)
            .filter(
                rbac_group_members.c.group_id == group_id,
                rbac_group_members.c.user_id == user_id,
            )
            .first()
            is not None
        )

    def add_user_to_group(self, user_id: int, group_id: int) -> bool:
        """Returns False when the user is already a member."""
        user = self.get_user(user_id)
        group = self.get_group(group_id)
        if self.is_user_in_group(user.id, group.id):
            return False
        self.session.execute(
            rbac_group_members.insert().values(
                group_id=group.id, user_id=user.id, joined_at=datetime.now()
            )
        )
        self.session.flush()
        logger.info(f"Added {user.username} to group {group.name}")
        return True

    def add_users_to_group(self, user_ids: Iterable[int], group_id: int) -> int:
        return sum(1 for user_id in user_ids if self.add_user_to_group(user_id, group_id))

    def remove_user_from_group(self, user_id: int, group_id: int) -> bool:
        result = self.session.execute(
            rbac_group_members.delete().where(
                rbac_group_members.c.group_id == group_id,
                rbac_group_members.c.user_id == user_id,
            )
        )
        self.session.flush()
        return bool(result.rowcount)

    def groups_for_user(self, user: Union[User, int]) -> List[Group]:
        user_id = user.id if isinstance(user, User) else user
        return (
            self.session.query(Group)
            .join(rbac_group_members, rbac_group_members.c.group_id == Group.id)
            .filter(rbac_group_members.c.user_id == user_id, Group.is_active.is_(True))
            .order_by(Group.name.asc())
            .all()
        )

    def group_members(self, group_id: int) -> List[User]:
        return (
            self.session.query(User)
            .join(rbac_group_members, rbac_group_members.c.user_id == User.id)
            .filter(rbac_group_members.c.group_id == group_id)
            .order_by(User.username.asc())
            .all()
        )

    def list_active_groups(self) -> List[Group]:
        return (
            self.session.query(Group)
            .filter(Group.is_active.is_(True))
            .order_by(Group.name.asc())
            .all()
        )

    def groups_with_user_count(self) -> List[Dict]:
        rows = (
            self.session.query(Group, func.count(rbac_group_members.c.user_id))
            .outerjoin(rbac_group_members, rbac_group_members.c.group_id == Group.id)
            .filter(Group.is_active.is_(True))
            .group_by(Group.id)
            .order_by(Group.name.asc())
            .all()
        )
        return [
            {"id": group.id, "name": group.name, "user_count": count}
            for group, count in rows
        ]
