"""
Permission levels and role policy predicates.

Admin and role-ceiling checks live here and nowhere else; resolvers and
services call these helpers instead of comparing role names inline.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Iterable, Optional

from bpmnvault.config import get_settings

if TYPE_CHECKING:  # pragma: no cover
    from bpmnvault.config import Settings
    from bpmnvault.security.rbac.principals import PrincipalSet


class PermissionLevel(str, enum.Enum):
    """Totally ordered: VIEW < EDIT < ADMIN."""

    VIEW = "VIEW"
    EDIT = "EDIT"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def covers(self, required: "PermissionLevel") -> bool:
        return self.rank >= PermissionLevel(required).rank

    @classmethod
    def highest(
        cls, levels: Iterable["PermissionLevel"], default: Optional["PermissionLevel"] = None
    ) -> Optional["PermissionLevel"]:
        best = default
        for level in levels:
            level = cls(level)
            if best is None or level.rank > best.rank:
                best = level
        return best

    @classmethod
    def lowest(cls, *levels: "PermissionLevel") -> "PermissionLevel":
        return min((cls(level) for level in levels), key=lambda lv: lv.rank)


_RANKS = {
    PermissionLevel.VIEW: 0,
    PermissionLevel.EDIT: 1,
    PermissionLevel.ADMIN: 2,
}


class PrincipalType(str, enum.Enum):
    USER = "USER"
    GROUP = "GROUP"
    ROLE = "ROLE"


def is_system_admin(principals: "PrincipalSet", settings: Optional["Settings"] = None) -> bool:
    settings = settings or get_settings()
    return settings.ADMIN_ROLE_NAME in principals.role_names


def has_modeler_entitlement(
    principals: "PrincipalSet", settings: Optional["Settings"] = None
) -> bool:
    settings = settings or get_settings()
    return bool(settings.modeler_roles & principals.role_names)


def is_viewer_capped(principals: "PrincipalSet", settings: Optional["Settings"] = None) -> bool:
    """
    Viewer-only principals cannot exceed VIEW, whatever their assignments say.

    The viewer role must be held directly; the modeler entitlement may come
    through the hierarchy (ADMIN -> MODELER counts as modeler).
    """
    settings = settings or get_settings()
    if is_system_admin(principals, settings):
        return False
    holds_viewer = bool(settings.viewer_roles & principals.direct_role_names)
    return holds_viewer and not has_modeler_entitlement(principals, settings)


def role_ceiling(
    principals: "PrincipalSet", settings: Optional["Settings"] = None
) -> PermissionLevel:
    if is_viewer_capped(principals, settings):
        return PermissionLevel.VIEW
    return PermissionLevel.ADMIN
