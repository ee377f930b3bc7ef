"""
SQLAlchemy-backed role and menu data sources.

These adapt ORM rows to the immutable types the authorization core works on.
Storage failures surface as DataSourceError so the core can fail closed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from deptguard.models.security import DepartmentMenu, DepartmentRole, Menu, Role
from deptguard.security.errors import DataSourceError
from deptguard.security.types import (
    CustomRole,
    DepartmentRoleOverlay,
    MatchMode,
    MenuNode,
    MenuOverlay,
    RoleOverride,
    RoleTemplate,
)

logger = logging.getLogger(__name__)


def role_template_from_row(row: Role) -> RoleTemplate:
    return RoleTemplate(
        id=row.id,
        code=row.code,
        name=row.name,
        priority=row.priority,
        badge_color=row.badge_color,
        can_edit_data=row.can_edit_data,
        can_download_data=row.can_download_data,
        is_active=row.is_active,
    )


def department_role_from_row(row: DepartmentRole) -> DepartmentRoleOverlay:
    if row.role_id is not None:
        return RoleOverride(
            id=row.id,
            department_id=row.department_id,
            role_id=row.role_id,
            is_enabled=row.is_enabled,
            name_override=row.name_override,
            badge_color_override=row.badge_color_override,
        )
    return CustomRole(
        id=row.id,
        department_id=row.department_id,
        code=row.code or "",
        name=row.name or "",
        priority=row.priority if row.priority is not None else 0,
        badge_color=row.badge_color,
        can_edit_data=row.can_edit_data,
        can_download_data=row.can_download_data,
        is_enabled=row.is_enabled,
    )


def menu_node_from_row(row: Menu) -> MenuNode:
    return MenuNode(
        id=row.id,
        key=row.key,
        parent_id=row.parent_id,
        title=row.title,
        href=row.href,
        icon=row.icon,
        match_mode=MatchMode(row.match_mode),
        pattern=row.pattern,
        min_priority=row.min_priority,
        is_section=row.is_section,
        is_active=row.is_active,
        hidden=row.hidden,
        lock_hidden_override=row.lock_hidden_override,
        order=row.sort_order,
    )


def menu_overlay_from_row(row: DepartmentMenu) -> MenuOverlay:
    return MenuOverlay(
        department_id=row.department_id,
        menu_id=row.menu_id,
        is_enabled=row.is_enabled,
        hidden_override=row.hidden_override,
        sort_order=row.sort_order,
    )


class _SqlSource:
    """
    Shared session handling.

    Built with a Session, every read uses it as-is (request scope). Built with
    a session factory, every read opens and closes its own session, which is
    what an application-wide cached composer needs.
    """

    def __init__(self, session: Session | None = None, session_factory: Callable[[], Session] | None = None) -> None:
        if (session is None) == (session_factory is None):
            raise ValueError("exactly one of session or session_factory is required")
        self._session = session
        self._session_factory = session_factory

    @contextmanager
    def _reading(self, what: str) -> Iterator[Session]:
        try:
            if self._session is not None:
                yield self._session
            else:
                with self._session_factory() as db:
                    yield db
        except SQLAlchemyError as exc:
            logger.warning("Storage read failed while loading %s: %s", what, type(exc).__name__)
            raise DataSourceError(f"could not load {what}") from exc


class SqlRoleSource(_SqlSource):
    def get_role_template(self, role_id: int) -> RoleTemplate | None:
        with self._reading("role") as db:
            row = db.get(Role, role_id)
            return role_template_from_row(row) if row is not None else None

    def get_department_role(self, overlay_id: int) -> DepartmentRoleOverlay | None:
        with self._reading("department role") as db:
            row = db.get(DepartmentRole, overlay_id)
            return department_role_from_row(row) if row is not None else None

    def find_role_override(self, department_id: int, role_id: int) -> RoleOverride | None:
        with self._reading("role override") as db:
            row = db.execute(
                select(DepartmentRole)
                .where(DepartmentRole.department_id == department_id, DepartmentRole.role_id == role_id)
                .order_by(DepartmentRole.id)
                .limit(1)
            ).scalar_one_or_none()
            if row is None:
                return None
            overlay = department_role_from_row(row)
            return overlay if isinstance(overlay, RoleOverride) else None


class SqlMenuSource(_SqlSource):
    def list_menu_nodes(self) -> list[MenuNode]:
        with self._reading("menus") as db:
            rows = db.scalars(
                select(Menu)
                .where(Menu.is_active.is_(True))
                .order_by(Menu.parent_id, Menu.sort_order, Menu.created_at, Menu.id)
            ).all()
            return [menu_node_from_row(r) for r in rows]

    def list_menu_overlays(self, department_id: int) -> list[MenuOverlay]:
        with self._reading("menu overlays") as db:
            rows = db.scalars(
                select(DepartmentMenu).where(DepartmentMenu.department_id == department_id)
            ).all()
            return [menu_overlay_from_row(r) for r in rows]
