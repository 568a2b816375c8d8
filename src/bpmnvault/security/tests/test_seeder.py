from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from bpmnvault.bootstrap import import_all_models
from bpmnvault.database import create_db_engine
from bpmnvault.models.base import Base
from bpmnvault.security.rbac.principals import PrincipalResolver
from bpmnvault.security.rbac.role_graph import RoleGraph
from bpmnvault.security.rbac.service import DirectoryService
from bpmnvault.seeder import SeederRegistry
from bpmnvault.seeder.core.roles import AdminUserSeeder, RoleHierarchySeeder, RoleSeeder


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


def test_seeders_run_in_priority_order():
    order = SeederRegistry.seeders()
    assert order.index(RoleSeeder) < order.index(RoleHierarchySeeder) < order.index(AdminUserSeeder)


def test_default_roles_and_hierarchy(session):
    SeederRegistry.run_all(session)

    directory = DirectoryService(session)
    admin = directory.get_role_by_name("ROLE_ADMIN")
    modeler = directory.get_role_by_name("ROLE_MODELER")
    viewer = directory.get_role_by_name("ROLE_VIEWER")
    assert admin and modeler and viewer

    edges = {(e.parent_role_id, e.child_role_id): e.hierarchy_level for e in RoleGraph(session).list_edges()}
    assert edges == {(admin.id, modeler.id): 1, (modeler.id, viewer.id): 2}
    assert directory.get_user_by_username("admin") is None


def test_seeding_is_idempotent(session):
    SeederRegistry.run_all(session)
    SeederRegistry.run_all(session)
    assert len(RoleGraph(session).list_edges()) == 2


def test_admin_user_option(session):
    SeederRegistry.run_all(session, {"admin_username": "root", "admin_email": "root@example.com"})

    user = DirectoryService(session).get_user_by_username("root")
    assert user.email == "root@example.com"
    principals = PrincipalResolver(session).resolve(user)
    assert principals.role_names == {"ROLE_ADMIN", "ROLE_MODELER", "ROLE_VIEWER"}
