from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from bpmnvault import __version__
from bpmnvault.config import get_settings
from bpmnvault.exceptions import VaultError

app = typer.Typer(add_completion=False, help="BpmnVault CLI")


@app.callback()
def _root() -> None:
    logging.basicConfig(
        level=get_settings().LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def start(
    host: Optional[str] = typer.Option(None, help="Bind host"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
    reload: bool = typer.Option(False, help="Auto-reload on changes (dev)"),
) -> None:
    settings = get_settings()
    uvicorn.run(
        "bpmnvault.api.app:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
        reload=reload,
    )


@app.command()
def version() -> None:
    typer.echo(__version__)


@app.command("init-db")
def init_db_command() -> None:
    """Create all tables (SCHEMA_MODE=create_all) or verify migrations ran."""
    from bpmnvault.database import init_db

    try:
        init_db(create_tables=True)
    except RuntimeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)
    typer.echo("Database initialized.")


@app.command()
def seed(
    admin_username: Optional[str] = typer.Option(
        None, help="Also create this user and grant the admin role"
    ),
    admin_email: Optional[str] = typer.Option(None, help="Email for the admin user"),
) -> None:
    """Seed default roles and the ADMIN -> MODELER -> VIEWER hierarchy."""
    from bpmnvault.database import SessionLocal, init_db
    from bpmnvault.seeder import SeederRegistry

    init_db(create_tables=True)
    session = SessionLocal()
    try:
        SeederRegistry.run_all(
            session, {"admin_username": admin_username, "admin_email": admin_email}
        )
    finally:
        session.close()
    typer.echo("Seeding complete.")


def _echo_tree(nodes, depth: int = 0) -> None:
    for node in nodes:
        typer.echo(f"{'  ' * depth}- {node.name} ({node.role_id})")
        _echo_tree(node.children, depth + 1)


@app.command("role-tree")
def role_tree() -> None:
    """Print the active role hierarchy as a forest."""
    from bpmnvault.database import get_db_session
    from bpmnvault.security.rbac.role_graph import RoleGraph

    with get_db_session() as session:
        forest = RoleGraph(session).build_tree()
    if not forest:
        typer.echo("No roles defined.")
        return
    _echo_tree(forest)


@app.command("add-hierarchy")
def add_hierarchy(
    parent: str = typer.Argument(..., help="Parent role name"),
    child: str = typer.Argument(..., help="Child role name"),
    level: Optional[int] = typer.Option(None, help="Hierarchy level"),
) -> None:
    """Make holders of PARENT also act as CHILD."""
    from bpmnvault.database import get_db_session
    from bpmnvault.security.rbac.role_graph import RoleGraph
    from bpmnvault.security.rbac.service import DirectoryService

    try:
        with get_db_session() as session:
            directory = DirectoryService(session)
            roles = []
            for name in (parent, child):
                role = directory.get_role_by_name(name)
                if not role:
                    typer.echo(f"Error: role not found: {name}", err=True)
                    raise typer.Exit(1)
                roles.append(role)
            edge = RoleGraph(session).create_edge(
                roles[0].id, roles[1].id, level, created_by="cli"
            )
            typer.echo(f"Created hierarchy {parent} -> {child} (edge {edge.id}).")
    except VaultError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1)


@app.command("create-user")
def create_user(
    username: str = typer.Argument(..., help="Username"),
    email: Optional[str] = typer.Option(None, help="Email"),
    roles: List[str] = typer.Option([], "--role", "-r", help="Role to grant (repeatable)"),
) -> None:
    from bpmnvault.database import get_db_session
    from bpmnvault.security.rbac.service import DirectoryService

    try:
        with get_db_session() as session:
            directory = DirectoryService(session)
            user = directory.create_user(username, email=email)
            for name in roles:
                role = directory.get_role_by_name(name)
                if not role:
                    typer.echo(f"Error: role not found: {name}", err=True)
                    raise typer.Exit(1)
                directory.grant_role(user.id, role.id)
            typer.echo(f"Created user {username} ({user.id}).")
    except VaultError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1)


@app.command("grant-role")
def grant_role(
    username: str = typer.Argument(..., help="Username"),
    role: str = typer.Argument(..., help="Role name"),
) -> None:
    from bpmnvault.database import get_db_session
    from bpmnvault.security.rbac.service import DirectoryService

    with get_db_session() as session:
        directory = DirectoryService(session)
        user = directory.get_user_by_username(username)
        target = directory.get_role_by_name(role)
        if not user or not target:
            typer.echo(f"Error: unknown user or role: {username}, {role}", err=True)
            raise typer.Exit(1)
        if directory.grant_role(user.id, target.id):
            typer.echo(f"Granted {role} to {username}.")
        else:
            typer.echo(f"{username} already holds {role}.")


def _find_alembic_ini() -> Optional[Path]:
    candidates = [
        Path.cwd() / "alembic.ini",
        Path(__file__).resolve().parents[2] / "alembic.ini",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


@app.command("db")
def db_command(
    action: str = typer.Argument(
        ..., help="upgrade|downgrade|revision|current|history"
    ),
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Migration message (for revision)"
    ),
    autogenerate: bool = typer.Option(
        True, "--autogenerate/--no-autogenerate", help="Autogenerate migration"
    ),
    revision: Optional[str] = typer.Option(
        None, "--revision", "-r", help="Target revision (for upgrade/downgrade)"
    ),
) -> None:
    """
    Database migrations via Alembic.

    Actions:
      upgrade   - Apply migrations (default: head)
      downgrade - Revert migrations
      revision  - Create new migration
      current   - Show current revision
      history   - Show migration history
    """
    import os
    import subprocess
    import sys

    alembic_ini = _find_alembic_ini()
    if alembic_ini is None:
        typer.echo("Error: alembic.ini not found", err=True)
        raise typer.Exit(1)

    cmd = [sys.executable, "-m", "alembic", "-c", str(alembic_ini)]

    if action == "upgrade":
        cmd.extend(["upgrade", revision or "head"])
    elif action == "downgrade":
        cmd.extend(["downgrade", revision or "-1"])
    elif action == "revision":
        cmd.append("revision")
        if autogenerate:
            cmd.append("--autogenerate")
        if not message:
            typer.echo("Warning: No message provided, using default", err=True)
        cmd.extend(["-m", message or "auto migration"])
    elif action in ("current", "history"):
        cmd.append(action)
    else:
        typer.echo(f"Unknown action: {action}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Running: {' '.join(cmd)}", err=True)
    result = subprocess.run(cmd, cwd=os.getcwd())
    raise typer.Exit(result.returncode)


def main() -> None:
    app()
