from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.orm import Session

from deptguard.db.base import Base
from deptguard.db.catalog import CatalogModel, MenuEntry, load_catalog
from deptguard.models.security import Department, Menu, Role, User

logger = logging.getLogger(__name__)


def init_db(catalog_path: Path) -> None:
    """
    Create tables and seed the catalog once.

    Seeding is skipped when any department already exists.
    """

    from deptguard.db.session import SessionLocal, engine

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed_catalog(db, load_catalog(catalog_path))
        db.commit()


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Department.id).limit(1)).first() is not None


def _dense_sibling_orders(menus: list[MenuEntry]) -> dict[str, int]:
    """Renumber declared orders to 0..N-1 per sibling group, declaration order breaking ties."""

    groups: dict[str | None, list[tuple[int, int, str]]] = {}
    for index, menu in enumerate(menus):
        groups.setdefault(menu.parent, []).append((menu.order, index, menu.key))

    orders: dict[str, int] = {}
    for bucket in groups.values():
        for position, (_order, _index, key) in enumerate(sorted(bucket)):
            orders[key] = position
    return orders


def seed_catalog(db: Session, catalog: CatalogModel) -> None:
    """Insert catalog rows (flushes, does not commit)."""

    departments = {d.code: Department(code=d.code, name=d.name, description=d.description) for d in catalog.departments}
    db.add_all(departments.values())

    roles = {
        r.code: Role(
            code=r.code,
            name=r.name,
            priority=r.priority,
            badge_color=r.badge_color,
            can_edit_data=r.can_edit_data,
            can_download_data=r.can_download_data,
            is_active=r.is_active,
            description=r.description,
        )
        for r in catalog.roles
    }
    db.add_all(roles.values())
    db.flush()

    orders = _dense_sibling_orders(catalog.menus)
    menus: dict[str, Menu] = {}
    for entry in catalog.menus:
        menus[entry.key] = Menu(
            key=entry.key,
            title=entry.title,
            href=entry.href,
            icon=entry.icon,
            match_mode=entry.match,
            pattern=entry.pattern,
            min_priority=entry.min_priority,
            is_section=entry.is_section,
            is_active=entry.is_active,
            hidden=entry.hidden,
            lock_hidden_override=entry.lock_hidden_override,
            sort_order=orders[entry.key],
            remarks=entry.remarks,
        )
    db.add_all(menus.values())
    db.flush()

    for entry in catalog.menus:
        if entry.parent is not None:
            menus[entry.key].parent_id = menus[entry.parent].id
    db.flush()

    for entry in catalog.users:
        db.add(
            User(
                username=entry.username,
                email=entry.email,
                department_id=departments[entry.department].id,
                role_id=roles[entry.role].id,
                is_active=entry.is_active,
            )
        )
    db.flush()

    logger.info(
        "Catalog seeded departments=%d roles=%d menus=%d users=%d",
        len(departments),
        len(roles),
        len(menus),
        len(catalog.users),
    )
