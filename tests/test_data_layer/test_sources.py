"""Tests for the SQLAlchemy role and menu sources."""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from deptguard.db.sources import SqlMenuSource, SqlRoleSource
from deptguard.models.security import DepartmentMenu, DepartmentRole, Menu
from deptguard.security.errors import DataSourceError
from deptguard.security.types import CustomRole, RoleOverride


def test_menu_source_lists_only_active_templates(seeded_session, menu_id):
    retired = seeded_session.get(Menu, menu_id("docs-changelog"))
    retired.is_active = False
    seeded_session.commit()

    nodes = SqlMenuSource(session=seeded_session).list_menu_nodes()

    keys = {n.key for n in nodes}
    assert "docs-changelog" not in keys
    assert "docs-tutorial" in keys


def test_menu_source_lists_department_overlays(seeded_session, menu_id):
    seeded_session.add(DepartmentMenu(department_id=1, menu_id=menu_id("docs-tutorial"), is_enabled=False))
    seeded_session.add(DepartmentMenu(department_id=2, menu_id=menu_id("docs-tutorial"), sort_order=4))
    seeded_session.commit()

    overlays = SqlMenuSource(session=seeded_session).list_menu_overlays(1)

    assert len(overlays) == 1
    assert overlays[0].is_enabled is False
    assert overlays[0].hidden_override is None
    assert overlays[0].sort_order is None


def test_session_factory_mode_opens_own_sessions(tables):
    factory = sessionmaker(bind=tables, class_=Session)

    assert SqlMenuSource(session_factory=factory).list_menu_nodes() == []


def test_source_requires_exactly_one_session_argument(db_session):
    with pytest.raises(ValueError):
        SqlMenuSource()
    with pytest.raises(ValueError):
        SqlMenuSource(session=db_session, session_factory=lambda: db_session)


def test_role_source_maps_both_overlay_variants(seeded_session):
    override = DepartmentRole(department_id=1, role_id=2, name_override="Senior editor")
    custom = DepartmentRole(department_id=1, code="AUDITOR", name="Auditor", priority=40)
    seeded_session.add_all([override, custom])
    seeded_session.commit()
    source = SqlRoleSource(session=seeded_session)

    assert isinstance(source.get_department_role(override.id), RoleOverride)
    assert isinstance(source.get_department_role(custom.id), CustomRole)
    assert source.find_role_override(1, 2).name_override == "Senior editor"
    assert source.find_role_override(2, 2) is None
    assert source.get_role_template(1).code == "ADMIN"
    assert source.get_role_template(999) is None


def test_storage_failures_become_data_source_errors():
    with Session(create_engine("sqlite://")) as broken:
        with pytest.raises(DataSourceError):
            SqlMenuSource(session=broken).list_menu_nodes()
        with pytest.raises(DataSourceError):
            SqlRoleSource(session=broken).get_role_template(1)
