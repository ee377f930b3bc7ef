"""
Pytest fixtures for the test suite.

Data-layer tests use a fresh in-memory SQLite database per test (StaticPool, so
TestClient worker threads see the same database). Engine tests build composed
records directly with the factories below and need no database.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from deptguard.security.types import (
    ComposedMenuRecord,
    EffectiveRole,
    Identity,
    MatchMode,
    RoleId,
    RoleOrigin,
)


TEST_DB_URL = "sqlite://"
CATALOG_PATH = Path(__file__).resolve().parents[1] / "config" / "catalog.yaml"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    from deptguard.db.session import build_engine

    return build_engine(TEST_DB_URL, poolclass=StaticPool)


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from deptguard.db.base import Base
    from deptguard.models import security  # noqa: F401  (register models)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db_session(session_factory):
    """Session bound to the per-test database; overlay writes may commit freely."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog():
    from deptguard.db.catalog import load_catalog

    return load_catalog(CATALOG_PATH)


@pytest.fixture
def seeded_session(db_session, catalog):
    """db_session with the bundled catalog committed."""
    from deptguard.db.init_db import seed_catalog

    seed_catalog(db_session, catalog)
    db_session.commit()
    return db_session


@pytest.fixture
def menu_id(seeded_session):
    """Look up a seeded menu id by its catalog key."""
    from deptguard.models.security import Menu

    def lookup(key: str) -> int:
        return seeded_session.execute(select(Menu.id).where(Menu.key == key)).scalar_one()

    return lookup


@pytest.fixture
def composer(seeded_session):
    from deptguard.db.sources import SqlMenuSource
    from deptguard.security.menu_compose import MenuComposer

    return MenuComposer(SqlMenuSource(session=seeded_session))


@pytest.fixture
def make_record():
    """Factory for ComposedMenuRecord with sensible defaults."""

    def make(
        id: int,
        parent_id: int | None = None,
        href: str | None = None,
        match_mode: MatchMode = MatchMode.PREFIX,
        pattern: str | None = None,
        min_priority: int | None = None,
        is_section: bool = False,
        active: bool = True,
        hidden: bool = False,
        order: int = 0,
        title: str | None = None,
    ) -> ComposedMenuRecord:
        return ComposedMenuRecord(
            id=id,
            title=title or f"menu-{id}",
            parent_id=parent_id,
            href=href,
            match_mode=match_mode,
            pattern=pattern,
            min_priority=min_priority,
            is_section=is_section,
            lock_hidden_override=False,
            template_hidden=hidden,
            template_order=order,
            effective_is_active=active,
            effective_hidden=hidden,
            effective_order=order,
        )

    return make


@pytest.fixture
def make_identity():
    """Factory for an authenticated Identity with a given effective priority."""

    def make(priority: int, department_id: int = 1, user_id: int = 1) -> Identity:
        role = EffectiveRole(
            code=f"P{priority}",
            name=f"Priority {priority}",
            priority=priority,
            badge_color=None,
            can_edit_data=False,
            can_download_data=False,
            enabled_in_department=True,
            origin=RoleOrigin.ROLE,
        )
        return Identity(user_id=user_id, department_id=department_id, role_ref=RoleId(1), effective_role=role)

    return make
