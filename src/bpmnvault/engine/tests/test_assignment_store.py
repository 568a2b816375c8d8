from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from bpmnvault.bootstrap import import_all_models
from bpmnvault.database import create_db_engine
from bpmnvault.engine.kinds import DIAGRAM
from bpmnvault.engine.permission.assignment_service import AssignmentStore
from bpmnvault.engine.version.service import VersioningEngine
from bpmnvault.exceptions import (
    DuplicateAssignmentError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from bpmnvault.models.base import Base
from bpmnvault.security.rbac.permissions import PermissionLevel, PrincipalType
from bpmnvault.security.rbac.principals import PrincipalResolver
from bpmnvault.security.rbac.service import DirectoryService


@pytest.fixture()
def session():
    import_all_models()
    engine = create_db_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def store(session):
    return AssignmentStore(session, DIAGRAM)


@pytest.fixture()
def diagram(session):
    return VersioningEngine(session, DIAGRAM).create(file_name="d.bpmn", content="<d/>")


@pytest.fixture()
def user(session):
    return DirectoryService(session).create_user("alice")


def test_assign_populates_matching_principal_column(store, diagram, user):
    assignment = store.assign(
        diagram.id, "USER", user.id, "EDIT", assigned_by="admin", notes="review"
    )

    assert assignment.principal_type == PrincipalType.USER.value
    assert assignment.user_id == user.id
    assert assignment.group_id is None and assignment.role_id is None
    assert assignment.level == PermissionLevel.EDIT
    assert assignment.principal_id == user.id
    assert assignment.to_dict()["notes"] == "review"


def test_duplicate_active_assignment_rejected(store, diagram, user):
    store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")
    with pytest.raises(DuplicateAssignmentError) as exc:
        store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.ADMIN, "admin")
    assert exc.value.code == "DUPLICATE_ASSIGNMENT"


def test_revoked_assignment_does_not_block_reassign(store, diagram, user):
    first = store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")
    store.revoke(first.id)
    second = store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.EDIT, "admin")
    assert second.id != first.id


def test_same_principal_id_different_type_is_not_duplicate(session, store, diagram, user):
    group = DirectoryService(session).create_group("g")
    assert group.id == user.id
    store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")
    store.assign(diagram.id, PrincipalType.GROUP, group.id, PermissionLevel.VIEW, "admin")
    assert len(store.list_for_resource(diagram.id)) == 2


def test_assign_validates_inputs(store, diagram, user):
    with pytest.raises(NotFoundError):
        store.assign(999, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")
    with pytest.raises(NotFoundError):
        store.assign(diagram.id, PrincipalType.ROLE, 999, PermissionLevel.VIEW, "admin")
    with pytest.raises(ValidationError):
        store.assign(diagram.id, "ROBOT", user.id, PermissionLevel.VIEW, "admin")
    with pytest.raises(ValidationError):
        store.assign(diagram.id, PrincipalType.USER, user.id, "OWNER", "admin")


def test_revoke_is_idempotent(store, diagram, user):
    assignment = store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")
    assert store.revoke(assignment.id).is_active is False
    assert store.revoke(assignment.id).is_active is False
    with pytest.raises(NotFoundError):
        store.revoke(12345)


def test_update_level(store, diagram, user):
    assignment = store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")
    assert store.update_level(assignment.id, "ADMIN").permission_level == "ADMIN"

    store.revoke(assignment.id)
    with pytest.raises(InvalidStateError):
        store.update_level(assignment.id, PermissionLevel.EDIT)


def test_list_for_resource_newest_first(session, store, diagram):
    directory = DirectoryService(session)
    older = store.assign(
        diagram.id, PrincipalType.USER, directory.create_user("a").id, PermissionLevel.VIEW, "admin"
    )
    newer = store.assign(
        diagram.id, PrincipalType.USER, directory.create_user("b").id, PermissionLevel.VIEW, "admin"
    )
    older.assigned_at = datetime.utcnow() - timedelta(days=1)
    session.flush()

    assert [a.id for a in store.list_for_resource(diagram.id)] == [newer.id, older.id]


def test_list_accessible_resources(session, store, user):
    engine = VersioningEngine(session, DIAGRAM)
    directory = DirectoryService(session)
    mine = engine.create(file_name="mine", content="1")
    via_group = engine.create(file_name="group", content="1")
    via_role = engine.create(file_name="role", content="1")
    hidden = engine.create(file_name="hidden", content="1")

    group = directory.create_group("team")
    directory.add_user_to_group(user.id, group.id)
    role = directory.create_role("ROLE_MODELER")
    directory.grant_role(user.id, role.id)

    store.assign(mine.id, PrincipalType.USER, user.id, PermissionLevel.ADMIN, "admin")
    store.assign(via_group.id, PrincipalType.GROUP, group.id, PermissionLevel.VIEW, "admin")
    store.assign(via_role.id, PrincipalType.ROLE, role.id, PermissionLevel.EDIT, "admin")
    store.assign(via_role.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")

    principals = PrincipalResolver(session).resolve(user)
    ids = [d.id for d in store.list_accessible_resources(principals)]
    assert ids == [mine.id, via_group.id, via_role.id]
    assert hidden.id not in ids


def test_admin_sees_every_resource(session, store):
    engine = VersioningEngine(session, DIAGRAM)
    created = [engine.create(file_name=f"d{i}", content="x") for i in range(3)]
    directory = DirectoryService(session)
    admin = directory.create_user("root")
    directory.grant_role(admin.id, directory.create_role("ROLE_ADMIN").id)

    principals = PrincipalResolver(session).resolve(admin)
    assert [d.id for d in store.list_accessible_resources(principals)] == [d.id for d in created]


def test_list_by_assigner_and_count_by_type(session, store, diagram, user):
    directory = DirectoryService(session)
    group = directory.create_group("g1")
    store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "alice")
    store.assign(diagram.id, PrincipalType.GROUP, group.id, PermissionLevel.VIEW, "bob")

    assert [a.assigned_by for a in store.list_by_assigner("alice")] == ["alice"]
    assert store.count_by_type() == {"USER": 1, "GROUP": 1, "ROLE": 0}


def test_revoke_all(store, diagram, user, session):
    group = DirectoryService(session).create_group("g1")
    store.assign(diagram.id, PrincipalType.USER, user.id, PermissionLevel.VIEW, "admin")
    store.assign(diagram.id, PrincipalType.GROUP, group.id, PermissionLevel.VIEW, "admin")

    assert store.revoke_all(diagram.id) == 2
    assert store.list_for_resource(diagram.id) == []
