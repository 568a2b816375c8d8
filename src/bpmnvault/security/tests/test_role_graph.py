from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from bpmnvault.config import get_settings
from bpmnvault.database import create_db_engine
from bpmnvault.exceptions import CycleDetectedError, DuplicateEdgeError, NotFoundError
from bpmnvault.models.base import Base
from bpmnvault.security.rbac.models import Role, RoleHierarchy
from bpmnvault.security.rbac.role_graph import RoleGraph, walk_reachable
from bpmnvault.security.rbac.service import DirectoryService


@pytest.fixture()
def session():
    engine = create_db_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(
        bind=engine, tables=[Role.__table__, RoleHierarchy.__table__]
    )
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def roles(session):
    directory = DirectoryService(session)
    return {name: directory.create_role(name) for name in ("A", "B", "C", "D", "E")}


def test_create_edge_defaults_level_and_is_active(session, roles):
    graph = RoleGraph(session)
    edge = graph.create_edge(roles["A"].id, roles["B"].id, created_by="alice")

    assert edge.id is not None
    assert edge.is_active is True
    assert edge.hierarchy_level == 1
    assert edge.created_by == "alice"


def test_create_edge_uses_configured_default_level(session, roles, monkeypatch):
    monkeypatch.setenv("BPMNVAULT_DEFAULT_HIERARCHY_LEVEL", "3")
    get_settings.cache_clear()

    edge = RoleGraph(session).create_edge(roles["A"].id, roles["B"].id)
    assert edge.hierarchy_level == 3


def test_create_edge_unknown_role_is_checked_before_duplicates(session, roles):
    graph = RoleGraph(session)
    with pytest.raises(NotFoundError):
        graph.create_edge(roles["A"].id, 9999)


def test_duplicate_active_edge_rejected(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["A"].id, roles["B"].id)
    with pytest.raises(DuplicateEdgeError) as exc:
        graph.create_edge(roles["A"].id, roles["B"].id)
    assert exc.value.code == "DUPLICATE_EDGE"
    assert exc.value.status_code == 409


def test_deactivated_edge_can_be_recreated(session, roles):
    graph = RoleGraph(session)
    first = graph.create_edge(roles["A"].id, roles["B"].id)
    graph.deactivate_edge(first.id)

    second = graph.create_edge(roles["A"].id, roles["B"].id)
    assert second.id != first.id
    assert session.get(RoleHierarchy, first.id).is_active is False


def test_self_edge_is_a_cycle(session, roles):
    with pytest.raises(CycleDetectedError):
        RoleGraph(session).create_edge(roles["A"].id, roles["A"].id)


def test_transitive_cycle_rejected_and_nothing_persisted(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["A"].id, roles["B"].id)
    graph.create_edge(roles["B"].id, roles["C"].id)

    with pytest.raises(CycleDetectedError) as exc:
        graph.create_edge(roles["C"].id, roles["A"].id)

    assert exc.value.details["parent_role_id"] == roles["C"].id
    assert session.query(RoleHierarchy).count() == 2


def test_inactive_edges_do_not_count_for_cycles(session, roles):
    graph = RoleGraph(session)
    edge = graph.create_edge(roles["A"].id, roles["B"].id)
    graph.deactivate_edge(edge.id)

    reverse = graph.create_edge(roles["B"].id, roles["A"].id)
    assert reverse.is_active is True


def test_deactivate_unknown_edge(session, roles):
    with pytest.raises(NotFoundError):
        RoleGraph(session).deactivate_edge(12345)


def test_reachable_roles_is_transitive_and_excludes_start(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["A"].id, roles["B"].id)
    graph.create_edge(roles["B"].id, roles["C"].id)
    graph.create_edge(roles["A"].id, roles["D"].id)

    assert graph.reachable_roles(roles["A"].id) == {roles["B"].id, roles["C"].id, roles["D"].id}
    assert graph.reachable_roles(roles["C"].id) == set()


def test_reachable_roles_ignores_deactivated_edges(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["A"].id, roles["B"].id)
    edge = graph.create_edge(roles["B"].id, roles["C"].id)
    graph.deactivate_edge(edge.id)

    assert graph.reachable_roles(roles["A"].id) == {roles["B"].id}


def test_walk_reachable_terminates_on_cyclic_adjacency():
    adjacency = {1: [2], 2: [3], 3: [1]}
    assert walk_reachable(adjacency, 1, bound=10) == {1, 2, 3}


def test_walk_reachable_stops_at_bound():
    adjacency = {n: [n + 1] for n in range(100)}
    reached = walk_reachable(adjacency, 0, bound=5)
    assert len(reached) <= 6


def test_top_level_roles_and_tree_for_diamond(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["A"].id, roles["B"].id)
    graph.create_edge(roles["A"].id, roles["C"].id)
    graph.create_edge(roles["B"].id, roles["D"].id)
    graph.create_edge(roles["C"].id, roles["D"].id)

    assert [r.name for r in graph.top_level_roles()] == ["A", "E"]

    forest = graph.build_tree()
    assert [node.name for node in forest] == ["A", "E"]
    root = forest[0]
    assert [child.name for child in root.children] == ["B", "C"]
    assert [n.name for n in root.children[0].children] == ["D"]
    assert [n.name for n in root.children[1].children] == ["D"]
    assert forest[1].has_children is False
    assert root.to_dict()["children"][0]["name"] == "B"


def test_build_tree_terminates_on_corrupted_cycle(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["A"].id, roles["B"].id)
    graph.create_edge(roles["B"].id, roles["C"].id)
    # Bypass create_edge to simulate a cycle written by another tool.
    session.add(RoleHierarchy(parent_role_id=roles["C"].id, child_role_id=roles["B"].id))
    session.flush()

    forest = graph.build_tree()
    root = next(node for node in forest if node.name == "A")
    b = root.children[0]
    c = b.children[0]
    assert c.name == "C"
    assert [n.name for n in c.children] == ["B"]
    assert c.children[0].children == []


def test_child_and_parent_roles(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["A"].id, roles["C"].id)
    graph.create_edge(roles["B"].id, roles["C"].id)
    graph.create_edge(roles["A"].id, roles["D"].id)

    assert [r.name for r in graph.child_roles(roles["A"].id)] == ["C", "D"]
    assert [r.name for r in graph.parent_roles(roles["C"].id)] == ["A", "B"]


def test_list_edges_orders_by_level_then_parent_name(session, roles):
    graph = RoleGraph(session)
    graph.create_edge(roles["B"].id, roles["C"].id, 2)
    graph.create_edge(roles["D"].id, roles["E"].id, 1)
    graph.create_edge(roles["A"].id, roles["C"].id, 2)

    edges = graph.list_edges()
    assert [(e.parent_role_id, e.hierarchy_level) for e in edges] == [
        (roles["D"].id, 1),
        (roles["A"].id, 2),
        (roles["B"].id, 2),
    ]


def test_update_edge_level(session, roles):
    graph = RoleGraph(session)
    edge = graph.create_edge(roles["A"].id, roles["B"].id)
    assert graph.update_edge_level(edge.id, 5).hierarchy_level == 5
    with pytest.raises(NotFoundError):
        graph.update_edge_level(999, 2)
