from __future__ import annotations

from typer.testing import CliRunner

from bpmnvault import __version__
from bpmnvault.cli import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_seed_then_role_tree_and_grant():
    seeded = runner.invoke(app, ["seed", "--admin-username", "cli-admin"])
    assert seeded.exit_code == 0, seeded.stdout

    tree = runner.invoke(app, ["role-tree"])
    assert tree.exit_code == 0
    lines = tree.stdout.splitlines()
    assert lines[0].startswith("- ROLE_ADMIN")
    assert lines[1].startswith("  - ROLE_MODELER")
    assert lines[2].startswith("    - ROLE_VIEWER")

    created = runner.invoke(app, ["create-user", "cli-user", "--role", "ROLE_VIEWER"])
    assert created.exit_code == 0, created.stdout

    granted = runner.invoke(app, ["grant-role", "cli-user", "ROLE_MODELER"])
    assert granted.exit_code == 0
    assert "Granted ROLE_MODELER" in granted.stdout

    again = runner.invoke(app, ["grant-role", "cli-user", "ROLE_MODELER"])
    assert "already holds" in again.stdout


def test_add_hierarchy_rejects_cycle():
    runner.invoke(app, ["seed"])
    result = runner.invoke(app, ["add-hierarchy", "ROLE_VIEWER", "ROLE_ADMIN"])
    assert result.exit_code == 1


def test_db_rejects_unknown_action():
    result = runner.invoke(app, ["db", "sideways"])
    assert result.exit_code == 1
