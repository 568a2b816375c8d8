"""initial schema: rbac, diagrams, files, assignments

Revision ID: a7c3e91d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "a7c3e91d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _resource_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("metadata", _json(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", sa.String(length=500), nullable=True),
        sa.Column("current_version", sa.Integer(), nullable=False),
        sa.Column("lock_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.String(length=100), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("updated_by", sa.String(length=100), nullable=True),
    ]


def _snapshot_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("metadata", _json(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(length=100), nullable=True),
        sa.Column("version_notes", sa.String(length=1000), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    existing = set(sa.inspect(bind).get_table_names())

    if "rbac_roles" not in existing:
        op.create_table(
            "rbac_roles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("display_name", sa.String(length=200), nullable=True),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "rbac_users" not in existing:
        op.create_table(
            "rbac_users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
        )

    if "rbac_groups" not in existing:
        op.create_table(
            "rbac_groups",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_by", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "rbac_user_roles" not in existing:
        op.create_table(
            "rbac_user_roles",
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("assigned_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["rbac_users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["role_id"], ["rbac_roles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("user_id", "role_id"),
        )

    if "rbac_group_members" not in existing:
        op.create_table(
            "rbac_group_members",
            sa.Column("group_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("joined_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["group_id"], ["rbac_groups.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["rbac_users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("group_id", "user_id"),
        )

    if "rbac_role_hierarchy" not in existing:
        op.create_table(
            "rbac_role_hierarchy",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("parent_role_id", sa.Integer(), nullable=False),
            sa.Column("child_role_id", sa.Integer(), nullable=False),
            sa.Column("hierarchy_level", sa.Integer(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("created_by", sa.String(length=100), nullable=True),
            sa.ForeignKeyConstraint(["parent_role_id"], ["rbac_roles.id"]),
            sa.ForeignKeyConstraint(["child_role_id"], ["rbac_roles.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_rbac_role_hierarchy_parent_role_id", "rbac_role_hierarchy", ["parent_role_id"]
        )
        op.create_index(
            "ix_rbac_role_hierarchy_child_role_id", "rbac_role_hierarchy", ["child_role_id"]
        )
        op.create_index(
            "ix_rbac_role_hierarchy_pair",
            "rbac_role_hierarchy",
            ["parent_role_id", "child_role_id"],
        )

    if "meta_folders" not in existing:
        op.create_table(
            "meta_folders",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("folder_name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("folder_name"),
        )

    if "meta_diagrams" not in existing:
        op.create_table(
            "meta_diagrams",
            *_resource_columns(),
            sa.Column("content", sa.Text(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )

    if "meta_diagram_versions" not in existing:
        op.create_table(
            "meta_diagram_versions",
            *_snapshot_columns(),
            sa.Column("diagram_id", sa.Integer(), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["diagram_id"], ["meta_diagrams.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "diagram_id", "version_number", name="uq_diagram_version_number"
            ),
        )
        op.create_index(
            "ix_meta_diagram_versions_diagram_id", "meta_diagram_versions", ["diagram_id"]
        )
        op.create_index(
            "ix_diagram_versions_created",
            "meta_diagram_versions",
            ["diagram_id", "created_at"],
        )

    if "meta_files" not in existing:
        op.create_table(
            "meta_files",
            *_resource_columns(),
            sa.Column("file_type", sa.String(length=100), nullable=True),
            sa.Column("file_size", sa.Integer(), nullable=True),
            sa.Column("data", sa.LargeBinary(), nullable=True),
            sa.Column("folder_id", sa.Integer(), nullable=True),
            sa.Column("is_public", sa.Boolean(), nullable=False),
            sa.Column("is_template", sa.Boolean(), nullable=False),
            sa.Column("current_version_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["folder_id"], ["meta_folders.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )
        op.create_index("ix_meta_files_folder_id", "meta_files", ["folder_id"])

    if "meta_file_versions" not in existing:
        op.create_table(
            "meta_file_versions",
            *_snapshot_columns(),
            sa.Column("file_id", sa.Integer(), nullable=False),
            sa.Column("file_type", sa.String(length=100), nullable=True),
            sa.Column("file_size", sa.Integer(), nullable=True),
            sa.Column("data", sa.LargeBinary(), nullable=True),
            sa.ForeignKeyConstraint(["file_id"], ["meta_files.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("file_id", "version_number", name="uq_file_version_number"),
        )
        op.create_index("ix_meta_file_versions_file_id", "meta_file_versions", ["file_id"])
        op.create_index(
            "ix_file_versions_created", "meta_file_versions", ["file_id", "created_at"]
        )

    if "meta_assignments" not in existing:
        op.create_table(
            "meta_assignments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("resource_kind", sa.String(length=20), nullable=False),
            sa.Column("resource_id", sa.Integer(), nullable=False),
            sa.Column("principal_type", sa.String(length=10), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("group_id", sa.Integer(), nullable=True),
            sa.Column("role_id", sa.Integer(), nullable=True),
            sa.Column("permission_level", sa.String(length=10), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("assigned_by", sa.String(length=100), nullable=True),
            sa.Column("assigned_at", sa.DateTime(), nullable=True),
            sa.Column("notes", sa.String(length=500), nullable=True),
            sa.CheckConstraint(
                "(CASE WHEN user_id IS NULL THEN 0 ELSE 1 END"
                " + CASE WHEN group_id IS NULL THEN 0 ELSE 1 END"
                " + CASE WHEN role_id IS NULL THEN 0 ELSE 1 END) = 1",
                name="ck_assignment_single_principal",
            ),
            sa.ForeignKeyConstraint(["user_id"], ["rbac_users.id"]),
            sa.ForeignKeyConstraint(["group_id"], ["rbac_groups.id"]),
            sa.ForeignKeyConstraint(["role_id"], ["rbac_roles.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_assignments_resource",
            "meta_assignments",
            ["resource_kind", "resource_id", "is_active"],
        )
        op.create_index("ix_assignments_user", "meta_assignments", ["user_id"])
        op.create_index("ix_assignments_group", "meta_assignments", ["group_id"])
        op.create_index("ix_assignments_role", "meta_assignments", ["role_id"])


def downgrade() -> None:
    bind = op.get_bind()
    existing = set(sa.inspect(bind).get_table_names())
    for table in (
        "meta_assignments",
        "meta_file_versions",
        "meta_files",
        "meta_diagram_versions",
        "meta_diagrams",
        "meta_folders",
        "rbac_role_hierarchy",
        "rbac_group_members",
        "rbac_user_roles",
        "rbac_groups",
        "rbac_users",
        "rbac_roles",
    ):
        if table in existing:
            op.drop_table(table)
