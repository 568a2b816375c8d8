from __future__ import annotations

from functools import lru_cache
from typing import FrozenSet

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_names(raw: str) -> FrozenSet[str]:
    return frozenset(part.strip() for part in (raw or "").split(",") if part.strip())


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BPMNVAULT_",
        env_file=".env",
        extra="ignore",
    )

    # Runtime
    ENVIRONMENT: str = Field(default="dev", description="Environment name")
    HOST: str = Field(default="0.0.0.0", description="Bind host")
    PORT: int = Field(default=7920, description="Bind port")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///bpmnvault_dev.db")
    TEST_DATABASE_URL: str = Field(default="sqlite:///:memory:")
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL statements")
    SCHEMA_MODE: str = Field(
        default="create_all",
        description="create_all: auto-create tables (dev), migrations: use Alembic only (prod)",
    )

    # Role policy
    ADMIN_ROLE_NAME: str = Field(
        default="ROLE_ADMIN", description="Role that bypasses resource assignments"
    )
    MODELER_ROLE_NAMES: str = Field(
        default="ROLE_MODELER",
        description="Comma-separated roles entitled to edit, share and create diagrams",
    )
    VIEWER_ROLE_NAMES: str = Field(
        default="ROLE_VIEWER",
        description="Comma-separated roles whose holders are capped at VIEW",
    )
    DEFAULT_HIERARCHY_LEVEL: int = Field(
        default=1, description="Level assigned to new hierarchy edges when omitted"
    )

    # Versioning
    REFRESH_AUDIT_ON_NOOP_SAVE: bool = Field(
        default=True,
        description="Touch updated_at/updated_by when a save changes no tracked field",
    )

    # Identity context
    USER_HEADER: str = Field(
        default="x-user-id", description="Header carrying the authenticated user id"
    )

    @property
    def modeler_roles(self) -> FrozenSet[str]:
        return _split_names(self.MODELER_ROLE_NAMES)

    @property
    def viewer_roles(self) -> FrozenSet[str]:
        return _split_names(self.VIEWER_ROLE_NAMES)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
