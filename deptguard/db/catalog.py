"""
Seed catalog loader.

The catalog YAML holds the platform-level templates (departments, role
templates, menu nodes) plus optional demo users. It is validated with pydantic
and checked for the structural invariants the authorization core relies on:
unique keys, existing parents, no parent cycles, and no locked node hidden at
the template level.

Expected shape (simplified):

    catalog:
      departments:
        - {code: HR, name: Human Resources}
      roles:
        - {code: ADMIN, name: Admin, priority: 100, can_edit_data: true}
      menus:
        - key: root-settings
          title: Settings
          is_section: true
          min_priority: 100
        - key: settings-menus
          parent: root-settings
          title: Menus
          href: /masters/menus
          match: prefix
      users:
        - {username: alice, email: alice@example.com, department: HR, role: ADMIN}
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from deptguard.security.types import MatchMode

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when the catalog YAML is invalid."""


class DepartmentEntry(BaseModel):
    code: str = Field(min_length=1, max_length=10)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None


class RoleEntry(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    priority: int = Field(ge=0)
    badge_color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    can_edit_data: bool = False
    can_download_data: bool = False
    is_active: bool = True
    description: str | None = None


class MenuEntry(BaseModel):
    key: str = Field(min_length=1, max_length=100)
    parent: str | None = None
    order: int = 0
    title: str = Field(min_length=1, max_length=100)
    href: str | None = None
    icon: str | None = None
    match: MatchMode = MatchMode.PREFIX
    pattern: str | None = None
    min_priority: int | None = Field(default=None, ge=0)
    is_section: bool = False
    is_active: bool = True
    hidden: bool = False
    lock_hidden_override: bool = False
    remarks: str | None = None


class UserEntry(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=100)
    department: str
    role: str
    is_active: bool = True


class CatalogModel(BaseModel):
    departments: list[DepartmentEntry] = Field(default_factory=list)
    roles: list[RoleEntry] = Field(default_factory=list)
    menus: list[MenuEntry] = Field(default_factory=list)
    users: list[UserEntry] = Field(default_factory=list)


def _check_unique(values: list[str], what: str) -> None:
    seen: set[str] = set()
    for value in values:
        if value in seen:
            raise CatalogError(f"duplicate {what} {value!r}")
        seen.add(value)


def _check_menu_forest(menus: list[MenuEntry]) -> None:
    by_key = {m.key: m for m in menus}

    for menu in menus:
        if menu.parent is not None and menu.parent not in by_key:
            raise CatalogError(f"menu {menu.key!r} references unknown parent {menu.parent!r}")
        if menu.hidden and menu.lock_hidden_override:
            raise CatalogError(f"menu {menu.key!r} is hidden but locks hidden overrides")
        if menu.match is MatchMode.REGEX:
            if not menu.pattern:
                raise CatalogError(f"menu {menu.key!r} uses regex matching without a pattern")
            try:
                re.compile(menu.pattern)
            except re.error as exc:
                # Tolerated: an invalid pattern never matches at runtime.
                logger.warning("Catalog menu %r has an invalid pattern: %s", menu.key, exc)
        elif not menu.is_section and not menu.href:
            raise CatalogError(f"menu {menu.key!r} needs an href for {menu.match.value} matching")

    # Detect parent cycles.
    done: set[str] = set()
    for menu in menus:
        path: list[str] = []
        current: str | None = menu.key
        while current is not None and current not in done:
            if current in path:
                raise CatalogError(f"cycle detected in menu parents at {current!r}")
            path.append(current)
            current = by_key[current].parent
        done.update(path)


def validate_catalog(raw: dict[str, Any]) -> CatalogModel:
    try:
        model = CatalogModel.model_validate(raw)
    except ValidationError as exc:
        raise CatalogError(f"invalid catalog: {exc}") from exc

    _check_unique([d.code for d in model.departments], "department code")
    _check_unique([r.code for r in model.roles], "role code")
    _check_unique([m.key for m in model.menus], "menu key")
    _check_unique([u.username for u in model.users], "username")
    _check_menu_forest(model.menus)

    departments = {d.code for d in model.departments}
    roles = {r.code for r in model.roles}
    for user in model.users:
        if user.department not in departments:
            raise CatalogError(f"user {user.username!r} references unknown department {user.department!r}")
        if user.role not in roles:
            raise CatalogError(f"user {user.username!r} references unknown role {user.role!r}")

    return model


def load_catalog(path: Path) -> CatalogModel:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "catalog" not in raw:
        raise CatalogError(f"Missing top-level 'catalog' key in {path}")

    return validate_catalog(raw["catalog"] or {})
