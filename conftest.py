from __future__ import annotations

import os

import pytest

# Keep tests off the developer database file.
os.environ.setdefault("BPMNVAULT_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("BPMNVAULT_ENVIRONMENT", "test")


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "requires_db: marks tests that need a configured external database "
        "(enable with BPMNVAULT_PYTEST_DB=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items) -> None:
    flag = (os.getenv("BPMNVAULT_PYTEST_DB") or "").strip().lower()
    if flag in {"1", "true", "yes", "on"}:
        return
    skip_db = pytest.mark.skip(reason="set BPMNVAULT_PYTEST_DB=1 to run")
    for item in items:
        if "requires_db" in item.keywords:
            item.add_marker(skip_db)


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    from bpmnvault.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
