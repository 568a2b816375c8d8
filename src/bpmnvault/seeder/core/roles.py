from bpmnvault.config import get_settings
from bpmnvault.security.rbac.role_graph import RoleGraph
from bpmnvault.security.rbac.service import DirectoryService
from bpmnvault.seeder.base import BaseSeeder
from bpmnvault.seeder.registry import SeederRegistry

MODELER_ROLE = "ROLE_MODELER"
VIEWER_ROLE = "ROLE_VIEWER"


@SeederRegistry.register
class RoleSeeder(BaseSeeder):
    """Seeds the admin, modeler and viewer roles."""
    priority = 10

    def run(self):
        directory = DirectoryService(self.session)
        roles = (
            (get_settings().ADMIN_ROLE_NAME, "Administrator", "Full access to every resource"),
            (MODELER_ROLE, "Modeler", "Creates, edits and shares diagrams"),
            (VIEWER_ROLE, "Viewer", "Read-only access to shared diagrams"),
        )
        for name, display_name, description in roles:
            if directory.get_role_by_name(name):
                self.log(f"Role '{name}' already exists. Skipping.")
                continue
            directory.create_role(name, display_name=display_name, description=description)
            self.log(f"Created role '{name}'.")


@SeederRegistry.register
class RoleHierarchySeeder(BaseSeeder):
    """Seeds ADMIN -> MODELER -> VIEWER."""
    priority = 20

    def run(self):
        directory = DirectoryService(self.session)
        graph = RoleGraph(self.session)
        # (parent, child, hierarchy_level)
        hierarchy = (
            (get_settings().ADMIN_ROLE_NAME, MODELER_ROLE, 1),
            (MODELER_ROLE, VIEWER_ROLE, 2),
        )
        for parent_name, child_name, level in hierarchy:
            parent = directory.get_role_by_name(parent_name)
            child = directory.get_role_by_name(child_name)
            if not parent or not child:
                self.log(f"Missing role for {parent_name} -> {child_name}. Skipping.")
                continue
            if graph.find_active_edge(parent.id, child.id):
                self.log(f"Hierarchy {parent_name} -> {child_name} already exists. Skipping.")
                continue
            graph.create_edge(parent.id, child.id, level, created_by="seeder")
            self.log(f"Created hierarchy {parent_name} -> {child_name} (level {level}).")


@SeederRegistry.register
class AdminUserSeeder(BaseSeeder):
    """Seeds an admin user when ``admin_username`` is passed in the options."""
    priority = 40

    def run(self):
        username = self.options.get("admin_username")
        if not username:
            self.log("No admin username given. Skipping.")
            return

        directory = DirectoryService(self.session)
        user = directory.get_user_by_username(username)
        if user:
            self.log(f"User '{username}' already exists.")
        else:
            user = directory.create_user(username, email=self.options.get("admin_email"))
            self.log(f"Created user '{username}'.")

        role = directory.get_role_by_name(get_settings().ADMIN_ROLE_NAME)
        if role and directory.grant_role(user.id, role.id):
            self.log(f"Granted '{role.name}' to '{username}'.")
