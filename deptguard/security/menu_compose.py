"""
Menu composition: templates + department overlays -> ComposedMenuRecord list.

Merge rule per node:
    effective_is_active = overlay.is_enabled      ?? True
    effective_hidden    = overlay.hidden_override ?? template.hidden
    effective_order     = overlay.sort_order      ?? template.order

Output is in tree pre-order; siblings ascend by (effective_order, id).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol

from deptguard.security.cache import DepartmentCache
from deptguard.security.types import ComposedMenuRecord, ComposeMode, MenuNode, MenuOverlay

logger = logging.getLogger(__name__)


class MenuSource(Protocol):
    """Read access to menu templates and department menu overlays."""

    def list_menu_nodes(self) -> list[MenuNode]: ...

    def list_menu_overlays(self, department_id: int) -> list[MenuOverlay]: ...


def _compose_one(node: MenuNode, overlay: MenuOverlay | None) -> ComposedMenuRecord:
    effective_is_active = True
    effective_hidden = node.hidden
    effective_order = node.order

    if overlay is not None:
        if overlay.is_enabled is not None:
            effective_is_active = overlay.is_enabled
        # A locked node keeps its template visibility whatever the overlay says.
        if overlay.hidden_override is not None and not node.lock_hidden_override:
            effective_hidden = overlay.hidden_override
        if overlay.sort_order is not None:
            effective_order = overlay.sort_order

    return ComposedMenuRecord(
        id=node.id,
        title=node.title,
        parent_id=node.parent_id,
        href=None if node.is_section else node.href,
        match_mode=node.match_mode,
        pattern=node.pattern,
        min_priority=node.min_priority,
        is_section=node.is_section,
        lock_hidden_override=node.lock_hidden_override,
        template_hidden=node.hidden,
        template_order=node.order,
        effective_is_active=effective_is_active,
        effective_hidden=effective_hidden,
        effective_order=effective_order,
        key=node.key,
        icon=node.icon,
    )


def _sibling_key(record: ComposedMenuRecord) -> tuple[int, int]:
    return record.effective_order, record.id


def _tree_order(records: Iterable[ComposedMenuRecord]) -> list[ComposedMenuRecord]:
    """Pre-order walk from the roots. Records whose parent is not in the set are dropped."""

    children: dict[int | None, list[ComposedMenuRecord]] = {}
    for record in records:
        children.setdefault(record.parent_id, []).append(record)
    for bucket in children.values():
        bucket.sort(key=_sibling_key)

    ordered: list[ComposedMenuRecord] = []
    stack = list(reversed(children.get(None, [])))
    while stack:
        record = stack.pop()
        ordered.append(record)
        stack.extend(reversed(children.get(record.id, [])))
    return ordered


def compose_menu_records(
    nodes: Iterable[MenuNode],
    overlays: Iterable[MenuOverlay],
    mode: ComposeMode = ComposeMode.AUTHORIZATION,
) -> list[ComposedMenuRecord]:
    """
    Merge templates with one department's overlays.

    Only template-active nodes take part. In LISTING mode nodes hidden at the
    template level are left out together with their subtrees. A node whose
    parent is not part of the result is dropped as well, so every record's
    ancestor chain is complete.
    """

    mode = ComposeMode(mode)
    by_menu: dict[int, MenuOverlay] = {o.menu_id: o for o in overlays}

    composed: list[ComposedMenuRecord] = []
    for node in nodes:
        if not node.is_active:
            continue
        if mode is ComposeMode.LISTING and node.hidden:
            continue
        composed.append(_compose_one(node, by_menu.get(node.id)))

    ordered = _tree_order(composed)
    if len(ordered) != len(composed):
        kept = {r.id for r in ordered}
        logger.info(
            "Dropped menu records with unreachable parents mode=%s ids=%s",
            mode.value,
            sorted(r.id for r in composed if r.id not in kept),
        )
    return ordered


def normalize_sibling_order(records: Iterable[ComposedMenuRecord]) -> list[ComposedMenuRecord]:
    """Rewrite effective_order to a dense 0..N-1 sequence within each sibling group."""

    records = list(records)
    groups: dict[int | None, list[ComposedMenuRecord]] = {}
    for record in records:
        groups.setdefault(record.parent_id, []).append(record)

    position: dict[int, int] = {}
    for bucket in groups.values():
        for index, record in enumerate(sorted(bucket, key=_sibling_key)):
            position[record.id] = index

    return [replace(r, effective_order=position[r.id]) for r in records]


class MenuComposer:
    """
    Composes a department's menu records on demand, caching per department.

    The cache has no time-based expiry; overlay writers call invalidate().
    """

    def __init__(self, source: MenuSource, cache: DepartmentCache | None = None) -> None:
        self._source = source
        self._cache: DepartmentCache[tuple[ComposedMenuRecord, ...]] = cache or DepartmentCache()

    @property
    def cache(self) -> DepartmentCache:
        return self._cache

    def _load(self, department_id: int, mode: ComposeMode) -> tuple[ComposedMenuRecord, ...]:
        nodes = self._source.list_menu_nodes()
        overlays = self._source.list_menu_overlays(department_id)
        records = compose_menu_records(nodes, overlays, mode)
        logger.debug("Composed menus department_id=%s mode=%s count=%d", department_id, mode.value, len(records))
        return tuple(records)

    def compose_menus(
        self,
        department_id: int,
        mode: ComposeMode = ComposeMode.AUTHORIZATION,
    ) -> list[ComposedMenuRecord]:
        """
        Return composed records for a department.

        Raises DataSourceError when storage cannot be read; the guard maps that
        to a deny.
        """

        mode = ComposeMode(mode)
        records = self._cache.get_or_load(department_id, mode, lambda: self._load(department_id, mode))
        return list(records)

    def invalidate(self, department_id: int) -> None:
        self._cache.invalidate(department_id)
