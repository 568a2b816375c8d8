"""
Model registration helpers.

SQLAlchemy only creates tables for models that have been imported (registered) in the
metadata. `create_all()` and Alembic autogenerate both need an explicit import surface.
"""

from __future__ import annotations


def import_all_models() -> None:
    from bpmnvault.security.rbac import models as _rbac  # noqa: F401
    from bpmnvault.engine.models import diagram as _diagram  # noqa: F401
    from bpmnvault.engine.models import file as _file  # noqa: F401
    from bpmnvault.engine.permission import models as _permission  # noqa: F401
