"""Tests for effective role resolution."""

import pytest

from deptguard.security.effective_role import build_effective_role, resolve_effective_role
from deptguard.security.errors import DataSourceError, NotFoundReference
from deptguard.security.types import (
    CustomRole,
    DepartmentRoleId,
    RoleId,
    RoleOrigin,
    RoleOverride,
    RoleTemplate,
)


class FakeRoleSource:
    def __init__(self, templates=(), overlays=(), fail=False):
        self.templates = {t.id: t for t in templates}
        self.overlays = {o.id: o for o in overlays}
        self.fail = fail

    def get_role_template(self, role_id):
        if self.fail:
            raise DataSourceError("role storage unavailable")
        return self.templates.get(role_id)

    def get_department_role(self, overlay_id):
        if self.fail:
            raise DataSourceError("role storage unavailable")
        return self.overlays.get(overlay_id)

    def find_role_override(self, department_id, role_id):
        for overlay in self.overlays.values():
            if isinstance(overlay, RoleOverride) and overlay.department_id == department_id and overlay.role_id == role_id:
                return overlay
        return None


ADMIN = RoleTemplate(id=1, code="ADMIN", name="Admin", priority=100, badge_color="#111111", can_edit_data=True)
VIEWER = RoleTemplate(id=2, code="VIEWER", name="Viewer", priority=10)


def test_override_renames_but_keeps_template_priority():
    """Name override on top of ADMIN: priority still 100, name becomes Chief."""

    # Arrange
    source = FakeRoleSource(
        templates=[ADMIN],
        overlays=[RoleOverride(id=7, department_id=1, role_id=1, name_override="Chief")],
    )

    # Act
    role = resolve_effective_role(source, 1, DepartmentRoleId(7))

    # Assert
    assert role is not None
    assert role.priority == 100
    assert role.name == "Chief"
    assert role.code == "ADMIN"
    assert role.badge_color == "#111111"
    assert role.can_edit_data is True
    assert role.origin is RoleOrigin.OVERRIDE


def test_override_disabled_in_department():
    source = FakeRoleSource(
        templates=[VIEWER],
        overlays=[RoleOverride(id=3, department_id=1, role_id=2, is_enabled=False, badge_color_override="#00FF00")],
    )

    role = resolve_effective_role(source, 1, DepartmentRoleId(3))

    assert role.enabled_in_department is False
    assert role.badge_color == "#00FF00"
    assert role.priority == 10


def test_custom_role_uses_own_fields():
    source = FakeRoleSource(
        overlays=[
            CustomRole(
                id=9,
                department_id=2,
                code="AUDITOR",
                name="Auditor",
                priority=40,
                can_download_data=True,
            )
        ]
    )

    role = resolve_effective_role(source, 2, DepartmentRoleId(9))

    assert role.origin is RoleOrigin.CUSTOM
    assert role.priority == 40
    assert role.code == "AUDITOR"
    assert role.can_download_data is True
    assert role.enabled_in_department is True


def test_plain_role_picks_up_department_override():
    """A user pointing at the template still sees the department's cosmetic override."""

    source = FakeRoleSource(
        templates=[ADMIN],
        overlays=[RoleOverride(id=4, department_id=1, role_id=1, name_override="Chief", is_enabled=False)],
    )

    role = resolve_effective_role(source, 1, RoleId(1))

    assert role.origin is RoleOrigin.ROLE
    assert role.name == "Chief"
    assert role.priority == 100
    assert role.enabled_in_department is False


def test_plain_role_without_override():
    source = FakeRoleSource(
        templates=[ADMIN],
        overlays=[RoleOverride(id=4, department_id=2, role_id=1, name_override="Other dept")],
    )

    role = resolve_effective_role(source, 1, RoleId(1))

    assert role.name == "Admin"
    assert role.enabled_in_department is True


@pytest.mark.parametrize(
    "role_ref",
    [RoleId(99), DepartmentRoleId(99)],
)
def test_missing_reference_resolves_to_none(role_ref):
    source = FakeRoleSource(templates=[ADMIN])

    assert resolve_effective_role(source, 1, role_ref) is None


def test_override_with_missing_template_raises_in_strict_mode():
    source = FakeRoleSource(overlays=[RoleOverride(id=5, department_id=1, role_id=42)])

    with pytest.raises(NotFoundReference, match="role not found"):
        build_effective_role(source, 1, DepartmentRoleId(5))


def test_overlay_from_other_department_is_not_visible():
    source = FakeRoleSource(
        overlays=[CustomRole(id=9, department_id=2, code="AUDITOR", name="Auditor", priority=40)]
    )

    with pytest.raises(NotFoundReference):
        build_effective_role(source, 1, DepartmentRoleId(9))
    assert resolve_effective_role(source, 1, DepartmentRoleId(9)) is None


def test_storage_failure_resolves_to_none():
    source = FakeRoleSource(templates=[ADMIN], fail=True)

    assert resolve_effective_role(source, 1, RoleId(1)) is None
