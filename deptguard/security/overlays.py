"""
Administrative overlay writes.

Every write:
- passes the guard for the administrative surface it belongs to, then the
  administrative priority threshold (PermissionDenied otherwise);
- touches only the caller's own department;
- commits atomically and rolls back on any failure, so a rejected write
  leaves stored state unchanged;
- invalidates the department's composed-menu cache after a menu change.

Racing updates surface as Conflict (version_id_col / unique constraints).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from deptguard.db import events as _events  # noqa: F401  (register write-boundary checks)
from deptguard.models.security import DepartmentMenu, DepartmentRole, Menu, Role, User
from deptguard.schemas.security import AssignableRoleOut, CustomRoleIn, RoleOverrideIn
from deptguard.security.errors import (
    Conflict,
    DeptGuardError,
    NotFoundReference,
    OverlayValidationError,
    PermissionDenied,
)
from deptguard.security.guard import GuardOptions, require_admin
from deptguard.security.matcher import pick_best_match
from deptguard.security.menu_compose import MenuComposer
from deptguard.security.priority import ancestor_chain, build_menu_index
from deptguard.security.types import ComposeMode, Identity

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

Direction = Literal["up", "down"]


def _validate(model: type[M], payload: M | Mapping[str, Any]) -> M:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise OverlayValidationError(str(exc)) from exc


class OverlayService:
    """Department-local overlay writes for one request/session."""

    def __init__(
        self,
        db: Session,
        composer: MenuComposer,
        *,
        admin_threshold: int = 100,
        menus_path: str | None = None,
        roles_path: str | None = None,
        options: GuardOptions | None = None,
    ) -> None:
        self._db = db
        self._composer = composer
        self._threshold = admin_threshold
        self._menus_path = menus_path
        self._roles_path = roles_path
        self._options = options

    # ---- Helpers --------------------------------------------------------------------

    def _authorize(self, identity: Identity | None, path: str | None) -> Identity:
        records = None
        if path is not None and identity is not None:
            try:
                records = self._composer.compose_menus(identity.department_id, ComposeMode.AUTHORIZATION)
            except DeptGuardError as exc:
                raise PermissionDenied("menu records unavailable") from exc
        return require_admin(identity, self._threshold, path, records, self._options)

    def _commit(self, what: str) -> None:
        try:
            self._db.commit()
        except (StaleDataError, IntegrityError) as exc:
            self._db.rollback()
            logger.info("Overlay write conflicted: %s (%s)", what, type(exc).__name__)
            raise Conflict(f"{what} was changed concurrently") from exc
        except Exception:
            self._db.rollback()
            raise

    def _active_menu(self, menu_id: int) -> Menu:
        """
        Load a menu the department may edit.

        Template-inactive menus and menus hidden at template level (directly or
        through an ancestor) are not under department control.
        """

        menu = self._db.get(Menu, menu_id)
        if menu is None:
            raise NotFoundReference("menu", menu_id)
        if not menu.is_active:
            raise PermissionDenied(f"menu {menu_id} is disabled at template level")

        seen: set[int] = set()
        current: Menu | None = menu
        while current is not None and current.id not in seen:
            if current.hidden:
                raise PermissionDenied(f"menu {menu_id} is hidden at template level")
            seen.add(current.id)
            current = current.parent
        return menu

    def _admin_chain_ids(self, department_id: int) -> set[int]:
        """Ids of the records the administrative paths currently resolve through."""

        paths = [p for p in (self._menus_path, self._roles_path) if p is not None]
        if not paths:
            return set()
        records = self._composer.compose_menus(department_id, ComposeMode.AUTHORIZATION)
        by_id = build_menu_index(records).by_id

        protected: set[int] = set()
        for path in paths:
            best = pick_best_match(records, path)
            if best is not None:
                protected.update(r.id for r in ancestor_chain(best, by_id))
        return protected

    def _menu_overlay(self, department_id: int, menu_id: int) -> DepartmentMenu:
        row = self._db.execute(
            select(DepartmentMenu).where(
                DepartmentMenu.department_id == department_id,
                DepartmentMenu.menu_id == menu_id,
            )
        ).scalar_one_or_none()
        if row is None:
            row = DepartmentMenu(department_id=department_id, menu_id=menu_id)
            self._db.add(row)
        return row

    def _department_role(self, identity: Identity, overlay_id: int) -> DepartmentRole:
        row = self._db.get(DepartmentRole, overlay_id)
        if row is None or row.department_id != identity.department_id:
            raise NotFoundReference("department role", overlay_id)
        return row

    @staticmethod
    def _check_version(row: DepartmentRole, expected_version: int | None) -> None:
        if expected_version is not None and row.version != expected_version:
            raise Conflict(f"department role {row.id} is at version {row.version}, expected {expected_version}")

    def _code_taken(self, department_id: int, code: str, exclude_id: int | None = None) -> bool:
        stmt = select(DepartmentRole.id).where(
            DepartmentRole.department_id == department_id,
            DepartmentRole.code == code,
        )
        if exclude_id is not None:
            stmt = stmt.where(DepartmentRole.id != exclude_id)
        return self._db.execute(stmt.limit(1)).first() is not None

    # ---- Menu overlays --------------------------------------------------------------

    def set_hidden(self, identity: Identity | None, menu_id: int, hidden: bool) -> None:
        """
        Hide a menu in the caller's department, or clear the override.

        hidden=True stores an explicit override; hidden=False stores NULL so the
        template value applies again. Locked menus reject hidden=True.
        """

        identity = self._authorize(identity, self._menus_path)
        menu = self._active_menu(menu_id)
        if hidden and menu.lock_hidden_override:
            logger.info("Rejected hide of locked menu menu_id=%s department_id=%s", menu_id, identity.department_id)
            raise PermissionDenied(f"menu {menu_id} does not allow hiding")

        row = self._menu_overlay(identity.department_id, menu_id)
        row.hidden_override = True if hidden else None
        self._commit(f"menu {menu_id} visibility")
        self._composer.invalidate(identity.department_id)
        logger.info("Menu visibility set menu_id=%s department_id=%s hidden=%s", menu_id, identity.department_id, hidden)

    def set_enabled(self, identity: Identity | None, menu_id: int, enabled: bool) -> None:
        """Disable a menu (and the routes it matches) for the caller's department, or clear the override."""

        identity = self._authorize(identity, self._menus_path)
        self._active_menu(menu_id)
        if not enabled and menu_id in self._admin_chain_ids(identity.department_id):
            logger.info("Rejected disable of administrative menu menu_id=%s department_id=%s", menu_id, identity.department_id)
            raise PermissionDenied(f"menu {menu_id} guards an administrative page and cannot be disabled")

        row = self._menu_overlay(identity.department_id, menu_id)
        row.is_enabled = None if enabled else False
        self._commit(f"menu {menu_id} enablement")
        self._composer.invalidate(identity.department_id)
        logger.info("Menu enablement set menu_id=%s department_id=%s enabled=%s", menu_id, identity.department_id, enabled)

    def move_order(self, identity: Identity | None, menu_id: int, direction: Direction) -> list[int]:
        """
        Swap a menu with its previous ("up") or next ("down") sibling.

        Exactly the two affected overlay rows are upserted in one transaction.
        Only siblings shown in the admin listing take part, so template-hidden
        menus are skipped. Moving past either end is a successful no-op.
        Returns the sibling ids in their new order.
        """

        if direction not in ("up", "down"):
            raise OverlayValidationError(f"direction must be 'up' or 'down', got {direction!r}")

        identity = self._authorize(identity, self._menus_path)
        department_id = identity.department_id
        menu = self._active_menu(menu_id)

        parent_filter = Menu.parent_id.is_(None) if menu.parent_id is None else Menu.parent_id == menu.parent_id
        rows = self._db.execute(
            select(Menu, DepartmentMenu)
            .outerjoin(
                DepartmentMenu,
                and_(DepartmentMenu.menu_id == Menu.id, DepartmentMenu.department_id == department_id),
            )
            .where(parent_filter, Menu.is_active.is_(True), Menu.hidden.is_(False))
        ).all()

        siblings = sorted(
            (
                overlay.sort_order if overlay is not None and overlay.sort_order is not None else sibling.sort_order,
                sibling.id,
            )
            for sibling, overlay in rows
        )
        ids = [sibling_id for _order, sibling_id in siblings]
        index = ids.index(menu_id)
        other = index - 1 if direction == "up" else index + 1
        if other < 0 or other >= len(ids):
            return ids

        order_a, order_b = siblings[index][0], siblings[other][0]
        if order_a == order_b:
            # Duplicate orders cannot be swapped by value; use positions instead.
            order_a, order_b = index, other

        self._menu_overlay(department_id, ids[index]).sort_order = order_b
        self._menu_overlay(department_id, ids[other]).sort_order = order_a
        self._commit(f"menu {menu_id} order")
        self._composer.invalidate(department_id)

        ids[index], ids[other] = ids[other], ids[index]
        logger.info("Menu moved menu_id=%s department_id=%s direction=%s", menu_id, department_id, direction)
        return ids

    # ---- Role overlays --------------------------------------------------------------

    def create_custom_role(self, identity: Identity | None, payload: CustomRoleIn | Mapping[str, Any]) -> DepartmentRole:
        identity = self._authorize(identity, self._roles_path)
        data = _validate(CustomRoleIn, payload)

        if self._code_taken(identity.department_id, data.code):
            raise Conflict(f"role code {data.code!r} already used in this department")

        row = DepartmentRole(department_id=identity.department_id, **data.model_dump())
        self._db.add(row)
        self._commit(f"custom role {data.code}")
        logger.info("Custom role created id=%s department_id=%s code=%s", row.id, identity.department_id, data.code)
        return row

    def update_custom_role(
        self,
        identity: Identity | None,
        overlay_id: int,
        payload: CustomRoleIn | Mapping[str, Any],
        expected_version: int | None = None,
    ) -> DepartmentRole:
        identity = self._authorize(identity, self._roles_path)
        data = _validate(CustomRoleIn, payload)

        row = self._department_role(identity, overlay_id)
        if not row.is_custom:
            raise NotFoundReference("custom role", overlay_id)
        self._check_version(row, expected_version)
        if self._code_taken(identity.department_id, data.code, exclude_id=row.id):
            raise Conflict(f"role code {data.code!r} already used in this department")

        for field, value in data.model_dump().items():
            setattr(row, field, value)
        self._commit(f"custom role {overlay_id}")
        logger.info("Custom role updated id=%s department_id=%s", overlay_id, identity.department_id)
        return row

    def upsert_role_override(
        self,
        identity: Identity | None,
        role_id: int,
        payload: RoleOverrideIn | Mapping[str, Any],
        expected_version: int | None = None,
    ) -> DepartmentRole:
        """Create or update the caller department's cosmetic override of a role template."""

        identity = self._authorize(identity, self._roles_path)
        data = _validate(RoleOverrideIn, payload)

        role = self._db.get(Role, role_id)
        if role is None or not role.is_active:
            raise NotFoundReference("role", role_id)

        row = self._db.execute(
            select(DepartmentRole).where(
                DepartmentRole.department_id == identity.department_id,
                DepartmentRole.role_id == role_id,
            )
        ).scalar_one_or_none()
        if row is None:
            row = DepartmentRole(department_id=identity.department_id, role_id=role_id)
            self._db.add(row)
        else:
            self._check_version(row, expected_version)

        row.is_enabled = data.is_enabled
        row.name_override = data.name_override
        row.badge_color_override = data.badge_color_override
        self._commit(f"role override {role_id}")
        logger.info("Role override saved role_id=%s department_id=%s", role_id, identity.department_id)
        return row

    def delete_department_role(self, identity: Identity | None, overlay_id: int) -> None:
        """Delete an overlay. Removing an override reverts the department to the template."""

        identity = self._authorize(identity, self._roles_path)
        row = self._department_role(identity, overlay_id)

        in_use = self._db.execute(
            select(User.id).where(User.department_role_id == overlay_id).limit(1)
        ).first()
        if in_use is not None:
            raise Conflict(f"department role {overlay_id} is still assigned to users")

        self._db.delete(row)
        self._commit(f"department role {overlay_id}")
        logger.info("Department role deleted id=%s department_id=%s", overlay_id, identity.department_id)

    def list_assignable_roles(self, identity: Identity | None) -> list[AssignableRoleOut]:
        """
        Role options for user assignment in the caller's department.

        Active templates shadowed by an override are replaced by that override;
        disabled overlays are listed but flagged.
        """

        identity = self._authorize(identity, self._roles_path)

        roles = self._db.scalars(
            select(Role).where(Role.is_active.is_(True)).order_by(Role.priority, Role.code)
        ).all()
        overlays = self._db.scalars(
            select(DepartmentRole).where(DepartmentRole.department_id == identity.department_id)
        ).all()

        shadowed = {o.role_id for o in overlays if o.role_id is not None}
        options = [
            AssignableRoleOut(value=f"role:{r.id}", label=f"{r.name} ({r.code})", priority=r.priority)
            for r in roles
            if r.id not in shadowed
        ]
        for overlay in overlays:
            if overlay.role is not None:
                label = f"{overlay.name_override or overlay.role.name} ({overlay.role.code})"
                priority = overlay.role.priority
            else:
                label = f"{overlay.name} ({overlay.code})"
                priority = overlay.priority or 0
            options.append(
                AssignableRoleOut(
                    value=f"dr:{overlay.id}",
                    label=label,
                    priority=priority,
                    disabled=not overlay.is_enabled,
                )
            )

        options.sort(key=lambda o: (o.priority, o.label))
        return options
