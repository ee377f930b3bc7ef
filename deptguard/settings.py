from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from deptguard.security.types import ThresholdPolicy


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file + bundled catalog).
    - Every field can be overridden with a DEPTGUARD_* environment variable.
    """

    model_config = SettingsConfigDict(env_prefix="DEPTGUARD_", extra="ignore")

    db_url: str | None = None
    catalog_path: str | None = None
    log_level: str = "INFO"
    sql_echo: bool = False

    # Minimum effective priority for administrative overlay writes.
    admin_priority_threshold: int = Field(default=100, ge=0)
    # Paths the administrative surfaces live under; writes must pass the guard for them too.
    admin_menus_path: str = "/masters/menus"
    admin_roles_path: str = "/masters/roles"

    strict_not_found: bool = True
    navigation_threshold_policy: ThresholdPolicy = ThresholdPolicy.INHERITED

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "deptguard.db"
        return f"sqlite:///{db_path}"

    def resolved_catalog_path(self) -> Path:
        if self.catalog_path:
            return Path(self.catalog_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "catalog.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
