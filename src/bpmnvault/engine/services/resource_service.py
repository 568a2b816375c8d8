"""
Resource Services
Permission-checked operations on diagrams and files.

Each service resolves the acting user's principals per call, asks the
AccessResolver, then delegates to the AssignmentStore / VersioningEngine.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from bpmnvault.engine.kinds import DIAGRAM, FILE, ResourceKind
from bpmnvault.engine.permission.access import AccessResolver
from bpmnvault.engine.permission.assignment_service import AssignmentStore
from bpmnvault.engine.permission.models import Assignment
from bpmnvault.engine.version.service import SaveResult, VersioningEngine
from bpmnvault.exceptions import PermissionDeniedError
from bpmnvault.security.rbac import permissions as policy
from bpmnvault.security.rbac.models import User
from bpmnvault.security.rbac.permissions import PermissionLevel, PrincipalType
from bpmnvault.security.rbac.principals import PrincipalResolver, PrincipalSet

logger = logging.getLogger(__name__)

CREATOR_ASSIGNMENT_NOTE = "Auto-assigned to creator"


class ResourceService:
    kind: ResourceKind = FILE

    def __init__(self, session: Session):
        self.session = session
        self.principal_resolver = PrincipalResolver(session)
        self.access = AccessResolver(session, self.kind)
        self.assignments = AssignmentStore(session, self.kind)
        self.versions = VersioningEngine(session, self.kind)

    def _resolve(self, user: Union[User, int]):
        user = self.principal_resolver.get_user(user)
        return user, self.principal_resolver.resolve(user)

    def _require_create(self, user: User, principals: PrincipalSet) -> None:
        if policy.is_system_admin(principals) or policy.has_modeler_entitlement(principals):
            return
        logger.warning(f"Denied create {self.kind.name} to {user.username}: no modeler role")
        raise PermissionDeniedError("create", self.kind.name, user_id=user.id)

    def create(self, user: Union[User, int], **fields):
        user, principals = self._resolve(user)
        self._require_create(user, principals)
        resource = self.versions.create(created_by=user.username, **fields)
        self.assignments.assign(
            resource.id,
            PrincipalType.USER,
            user.id,
            PermissionLevel.ADMIN,
            assigned_by=user.username,
            notes=CREATOR_ASSIGNMENT_NOTE,
        )
        return resource

    def get(self, resource_id: int, user: Union[User, int]):
        _, principals = self._resolve(user)
        self.access.require(resource_id, principals, PermissionLevel.VIEW)
        return self.versions.get(resource_id)

    def save(
        self,
        resource_id: int,
        user: Union[User, int],
        changes: Dict[str, Any],
        *,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> SaveResult:
        user, principals = self._resolve(user)
        self.access.require(resource_id, principals, PermissionLevel.EDIT)
        return self.versions.save(
            resource_id,
            changes,
            user=user.username,
            notes=notes,
            expected_version=expected_version,
        )

    def restore(self, resource_id: int, version_number: int, user: Union[User, int]):
        user, principals = self._resolve(user)
        self.access.require(resource_id, principals, PermissionLevel.EDIT)
        return self.versions.restore(resource_id, version_number, user=user.username)

    def delete(self, resource_id: int, user: Union[User, int]) -> None:
        user, principals = self._resolve(user)
        self.access.require(resource_id, principals, PermissionLevel.ADMIN)
        self.assignments.revoke_all(resource_id)
        self.versions.delete(resource_id)

    def list_versions(self, resource_id: int, user: Union[User, int]) -> list:
        _, principals = self._resolve(user)
        self.access.require(resource_id, principals, PermissionLevel.VIEW)
        return self.versions.list_versions(resource_id)

    def share(
        self,
        resource_id: int,
        user: Union[User, int],
        principal_type,
        principal_id: int,
        level,
        notes: Optional[str] = None,
    ) -> Assignment:
        user, principals = self._resolve(user)
        if not self.access.can_assign(resource_id, principals):
            logger.warning(
                f"Denied share of {self.kind.name} {resource_id} to {user.username}"
            )
            raise PermissionDeniedError(
                "assign", f"{self.kind.name}:{resource_id}", user_id=user.id
            )
        return self.assignments.assign(
            resource_id,
            principal_type,
            principal_id,
            level,
            assigned_by=user.username,
            notes=notes,
        )

    def list_accessible(self, user: Union[User, int]) -> list:
        _, principals = self._resolve(user)
        return self.assignments.list_accessible_resources(principals)


class DiagramService(ResourceService):
    kind = DIAGRAM


class FileService(ResourceService):
    kind = FILE

    def branch(
        self,
        file_id: int,
        user: Union[User, int],
        new_file_name: str,
        *,
        version_number: Optional[int] = None,
    ):
        """New file seeded from ``file_id``'s live content or one of its snapshots."""
        user, principals = self._resolve(user)
        self.access.require(file_id, principals, PermissionLevel.VIEW)
        self._require_create(user, principals)

        original = self.versions.get(file_id)
        source = (
            self.versions.get_version(file_id, version_number)
            if version_number is not None
            else original
        )
        branched = self.create(
            user,
            file_name=new_file_name,
            file_type=source.file_type,
            data=source.data,
            metadata_json=source.metadata_json,
            tags=source.tags,
            description=f"Branched from: {original.file_name}",
            folder_id=original.folder_id,
            is_public=original.is_public,
            is_template=False,
        )
        logger.info(
            f"Branched file {file_id} (v{version_number or original.current_version}) "
            f"into file {branched.id}"
        )
        return branched

    def list_templates(self, user: Union[User, int]) -> List:
        return [f for f in self.list_accessible(user) if f.is_template]
