"""
Versioning Service
Snapshot-then-advance saves, restore, history listing and deletion for any
ResourceKind (diagrams and files).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import func, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bpmnvault.config import get_settings
from bpmnvault.context import get_acting_username
from bpmnvault.engine.kinds import ResourceKind
from bpmnvault.engine.permission.models import Assignment
from bpmnvault.exceptions import (
    ConcurrentModificationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Columns the engine owns; callers never set them directly.
_MANAGED_FIELDS = frozenset(
    {"id", "current_version", "lock_version", "current_version_id"}
)


class SaveResult(NamedTuple):
    resource: Any
    snapshot: Optional[Any]
    changed: bool


def _content_size(value) -> int:
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    return len(value)


class VersioningEngine:
    def __init__(self, session: Session, kind: ResourceKind):
        self.session = session
        self.kind = kind

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def get(self, resource_id: int):
        resource = self.session.get(self.kind.model, resource_id)
        if not resource:
            raise NotFoundError(self.kind.label, resource_id)
        return resource

    def _lock(self, resource_id: int):
        model = self.kind.model
        resource = (
            self.session.query(model)
            .filter(model.id == resource_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not resource:
            raise NotFoundError(self.kind.label, resource_id)
        return resource

    def _versions_query(self, resource_id: int):
        return self.session.query(self.kind.version_model).filter(
            self.kind.parent_column() == resource_id
        )

    def find_version(self, resource_id: int, version_number: int):
        return (
            self._versions_query(resource_id)
            .filter(self.kind.version_model.version_number == version_number)
            .first()
        )

    def _flush(self, resource) -> None:
        try:
            self.session.flush()
        except (StaleDataError, IntegrityError) as exc:
            raise ConcurrentModificationError(
                f"{self.kind.label} {resource.id} was modified concurrently",
                resource_kind=self.kind.name,
                resource_id=resource.id,
            ) from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, *, created_by: Optional[str] = None, **fields):
        model = self.kind.model
        settable = set(inspect(model).column_attrs.keys()) - _MANAGED_FIELDS
        unknown = [name for name in fields if name not in settable]
        if unknown:
            raise ValidationError(
                f"Unknown {self.kind.name} fields: {', '.join(sorted(unknown))}",
                field=unknown[0],
            )
        if not fields.get("file_name"):
            raise ValidationError("file_name is required", field="file_name")
        content_field = self.kind.content_field
        if fields.get(content_field) is None and not model.__table__.c[content_field].nullable:
            raise ValidationError(f"{content_field} is required", field=content_field)

        if self.kind.size_field and self.kind.size_field not in fields:
            fields[self.kind.size_field] = _content_size(fields.get(self.kind.content_field))

        user = created_by or get_acting_username()
        now = datetime.utcnow()
        resource = model(
            current_version=1,
            created_by=user,
            created_at=now,
            updated_by=user,
            updated_at=now,
            **fields,
        )
        self.session.add(resource)
        self.session.flush()
        logger.info(f"Created {self.kind.name} {resource.id} ({resource.file_name}) at version 1")
        return resource

    def save(
        self,
        resource_id: int,
        changes: Dict[str, Any],
        *,
        user: Optional[str] = None,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> SaveResult:
        """
        Apply ``changes`` to a resource.

        A change to any tracked field first snapshots the pre-save state under
        the pre-save version number, then advances ``current_version`` by one.
        Saving identical content writes no snapshot and keeps the version.
        """
        unknown = set(changes) - set(self.kind.writable_fields)
        if unknown:
            raise ValidationError(
                f"Fields not writable on {self.kind.name}: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        resource = self._lock(resource_id)
        if expected_version is not None and expected_version != resource.current_version:
            raise ConcurrentModificationError(
                f"{self.kind.label} {resource_id} is at version "
                f"{resource.current_version}, expected {expected_version}",
                resource_id=resource_id,
                expected_version=expected_version,
                current_version=resource.current_version,
            )

        user = user or get_acting_username()
        if not self._is_dirty(resource, changes):
            return self._save_unchanged(resource, changes, user)

        snapshot = self._snapshot(resource, user, notes)
        resource.current_version += 1
        self._apply(resource, changes, user)
        if self.kind.tracks_current:
            resource.current_version_id = snapshot.id
        self._flush(resource)

        logger.info(
            f"Saved {self.kind.name} {resource.id}: snapshot v{snapshot.version_number}, "
            f"now at v{resource.current_version}"
        )
        return SaveResult(resource, snapshot, True)

    def _is_dirty(self, resource, changes: Dict[str, Any]) -> bool:
        return any(
            field in changes and changes[field] != getattr(resource, field)
            for field in self.kind.tracked_fields
        )

    def _save_unchanged(self, resource, changes: Dict[str, Any], user: str) -> SaveResult:
        touched = False
        for field in self.kind.untracked_fields:
            if field in changes and changes[field] != getattr(resource, field):
                setattr(resource, field, changes[field])
                touched = True
        if touched or get_settings().REFRESH_AUDIT_ON_NOOP_SAVE:
            resource.updated_at = datetime.utcnow()
            resource.updated_by = user
        self._flush(resource)
        logger.debug(f"No content change for {self.kind.name} {resource.id}; no snapshot written")
        return SaveResult(resource, None, False)

    def _apply(self, resource, changes: Dict[str, Any], user: str) -> None:
        for field, value in changes.items():
            setattr(resource, field, value)
        size_field = self.kind.size_field
        if size_field and self.kind.content_field in changes:
            setattr(resource, size_field, _content_size(changes[self.kind.content_field]))
        resource.updated_at = datetime.utcnow()
        resource.updated_by = user

    def _snapshot(self, resource, user: str, notes: Optional[str]):
        number = resource.current_version
        clash = (
            self._versions_query(resource.id)
            .filter(self.kind.version_model.version_number >= number)
            .first()
        )
        if clash:
            raise ConcurrentModificationError(
                f"Snapshot v{clash.version_number} already exists for "
                f"{self.kind.name} {resource.id} at v{number}",
                resource_id=resource.id,
                version_number=clash.version_number,
            )

        values = {field: getattr(resource, field) for field in self.kind.snapshot_fields}
        values[self.kind.parent_fk] = resource.id
        snapshot = self.kind.version_model(
            version_number=number,
            created_at=datetime.utcnow(),
            created_by=user,
            version_notes=notes or f"Version {number}",
            **values,
        )
        self.session.add(snapshot)
        self._flush(resource)
        return snapshot

    def restore(self, resource_id: int, version_number: int, *, user: Optional[str] = None):
        """
        Make an old snapshot's content live again.

        The current state is snapshotted first, so a restore is itself undoable
        and version numbers are never reused.
        """
        resource = self._lock(resource_id)
        target = self.find_version(resource_id, version_number)
        if not target:
            raise InvalidStateError(
                f"Version {version_number} not found for {self.kind.name} {resource_id}",
                resource_id=resource_id,
                version_number=version_number,
            )

        user = user or get_acting_username()
        snapshot = self._snapshot(
            resource, user, f"Auto-saved before restoring version {version_number}"
        )
        resource.current_version += 1
        for field in self.kind.restore_fields:
            setattr(resource, field, getattr(target, field))
        resource.updated_at = datetime.utcnow()
        resource.updated_by = user
        if self.kind.tracks_current:
            resource.current_version_id = snapshot.id
        self._flush(resource)

        logger.info(
            f"Restored {self.kind.name} {resource_id} to content of v{version_number}; "
            f"now at v{resource.current_version}"
        )
        return resource

    def delete(self, resource_id: int) -> None:
        """Delete snapshots, then the resource, and deactivate its grants."""
        resource = self.get(resource_id)
        removed = self._versions_query(resource_id).delete(synchronize_session=False)
        revoked = (
            self.session.query(Assignment)
            .filter(
                Assignment.resource_kind == self.kind.name,
                Assignment.resource_id == resource_id,
                Assignment.is_active.is_(True),
            )
            .update({Assignment.is_active: False}, synchronize_session="fetch")
        )
        self.session.delete(resource)
        self._flush(resource)
        logger.info(
            f"Deleted {self.kind.name} {resource_id}, {removed} snapshots, "
            f"{revoked} active assignments"
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def list_versions(self, resource_id: int) -> List[Any]:
        self.get(resource_id)
        return (
            self._versions_query(resource_id)
            .order_by(self.kind.version_model.version_number.desc())
            .all()
        )

    def get_version(self, resource_id: int, version_number: int):
        version = self.find_version(resource_id, version_number)
        if not version:
            raise NotFoundError(
                f"{self.kind.label} version", version_number, resource_id=resource_id
            )
        return version

    def current_snapshot(self, resource_id: int):
        if not self.kind.tracks_current:
            return None
        resource = self.get(resource_id)
        if resource.current_version_id is None:
            return None
        return self.session.get(self.kind.version_model, resource.current_version_id)

    def is_current(self, snapshot) -> bool:
        if not self.kind.tracks_current:
            return False
        resource = self.session.get(self.kind.model, getattr(snapshot, self.kind.parent_fk))
        return resource is not None and resource.current_version_id == snapshot.id

    def delete_version(self, resource_id: int, version_number: int) -> None:
        version = self.get_version(resource_id, version_number)
        if self.is_current(version):
            raise InvalidStateError(
                f"Cannot delete the current version of {self.kind.name} {resource_id}",
                resource_id=resource_id,
                version_number=version_number,
            )
        self.session.delete(version)
        self.session.flush()
        logger.info(f"Deleted v{version_number} of {self.kind.name} {resource_id}")

    def version_count(self, resource_id: int) -> int:
        return self._versions_query(resource_id).count()

    def compare_versions(self, resource_id: int, version_a: int, version_b: int) -> Dict[str, Any]:
        first = self.get_version(resource_id, version_a)
        second = self.get_version(resource_id, version_b)
        content = self.kind.content_field
        size_a = _content_size(getattr(first, content))
        size_b = _content_size(getattr(second, content))
        return {
            "version_a": version_a,
            "version_b": version_b,
            "size_a": size_a,
            "size_b": size_b,
            "size_difference": size_b - size_a,
            "time_difference_seconds": (second.created_at - first.created_at).total_seconds(),
            "content_equal": getattr(first, content) == getattr(second, content),
        }

    def statistics(self, resource_id: int) -> Dict[str, Any]:
        resource = self.get(resource_id)
        versions = self.list_versions(resource_id)
        version_model = self.kind.version_model
        oldest, newest = (
            self.session.query(func.min(version_model.created_at), func.max(version_model.created_at))
            .filter(self.kind.parent_column() == resource_id)
            .one()
        )
        sizes = [_content_size(getattr(v, self.kind.content_field)) for v in versions]
        return {
            "resource_id": resource_id,
            "current_version": resource.current_version,
            "total_versions": len(versions),
            "total_size": sum(sizes),
            "average_size": (sum(sizes) / len(sizes)) if sizes else 0,
            "oldest_version_at": oldest,
            "newest_version_at": newest,
        }
