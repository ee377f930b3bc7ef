"""
Effective role resolution.

Merges a RoleTemplate with an optional department-local overlay into one
EffectiveRole. Priority and the two data-capability flags only ever come from
the template (or from a custom role's own fields); an override may change
presentation (name, badge colour) and the on/off state, nothing else.
"""

from __future__ import annotations

import logging
from typing import Protocol

from deptguard.security.errors import DeptGuardError, NotFoundReference
from deptguard.security.types import (
    CustomRole,
    DepartmentRoleId,
    DepartmentRoleOverlay,
    EffectiveRole,
    RoleId,
    RoleOrigin,
    RoleOverride,
    RoleRef,
    RoleTemplate,
)

logger = logging.getLogger(__name__)


class RoleSource(Protocol):
    """Read access to role templates and department role overlays."""

    def get_role_template(self, role_id: int) -> RoleTemplate | None: ...

    def get_department_role(self, overlay_id: int) -> DepartmentRoleOverlay | None: ...

    def find_role_override(self, department_id: int, role_id: int) -> RoleOverride | None: ...


def _from_custom(overlay: CustomRole) -> EffectiveRole:
    return EffectiveRole(
        code=overlay.code,
        name=overlay.name,
        priority=overlay.priority,
        badge_color=overlay.badge_color,
        can_edit_data=overlay.can_edit_data,
        can_download_data=overlay.can_download_data,
        enabled_in_department=overlay.is_enabled,
        origin=RoleOrigin.CUSTOM,
    )


def _apply_override(template: RoleTemplate, overlay: RoleOverride | None, origin: RoleOrigin) -> EffectiveRole:
    name = template.name
    badge_color = template.badge_color
    enabled = True
    if overlay is not None:
        if overlay.name_override is not None:
            name = overlay.name_override
        if overlay.badge_color_override is not None:
            badge_color = overlay.badge_color_override
        enabled = overlay.is_enabled

    return EffectiveRole(
        code=template.code,
        name=name,
        priority=template.priority,
        badge_color=badge_color,
        can_edit_data=template.can_edit_data,
        can_download_data=template.can_download_data,
        enabled_in_department=enabled,
        origin=origin,
    )


def build_effective_role(source: RoleSource, department_id: int, role_ref: RoleRef) -> EffectiveRole:
    """
    Strict variant of resolve_effective_role: raises NotFoundReference on any
    dangling reference. Storage errors propagate as DataSourceError.
    """

    if isinstance(role_ref, DepartmentRoleId):
        overlay = source.get_department_role(role_ref.id)
        if overlay is None:
            raise NotFoundReference("department role", role_ref.id)
        # An overlay owned by another department is not visible from this one.
        if overlay.department_id != department_id:
            raise NotFoundReference("department role", role_ref.id)

        if isinstance(overlay, CustomRole):
            return _from_custom(overlay)

        template = source.get_role_template(overlay.role_id)
        if template is None:
            raise NotFoundReference("role", overlay.role_id)
        return _apply_override(template, overlay, RoleOrigin.OVERRIDE)

    if isinstance(role_ref, RoleId):
        template = source.get_role_template(role_ref.id)
        if template is None:
            raise NotFoundReference("role", role_ref.id)
        override = source.find_role_override(department_id, template.id)
        return _apply_override(template, override, RoleOrigin.ROLE)

    raise NotFoundReference("role reference", role_ref)


def resolve_effective_role(source: RoleSource, department_id: int, role_ref: RoleRef) -> EffectiveRole | None:
    """
    Resolve the effective role for (department, role reference).

    Returns None when anything on the way is missing or unreadable. Callers
    must treat None as deny, never as "no restriction".
    """

    try:
        return build_effective_role(source, department_id, role_ref)
    except DeptGuardError as exc:
        logger.warning(
            "Effective role unresolved department_id=%s role_ref=%s: %s",
            department_id,
            role_ref,
            exc,
        )
        return None
