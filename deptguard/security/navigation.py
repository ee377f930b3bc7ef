"""
Navigation filtering: prune composed menu records to what one priority may see.

This is for rendering only. Authorization always goes through guard.decide().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from deptguard.security.menu_compose import normalize_sibling_order
from deptguard.security.priority import build_menu_index, effective_threshold
from deptguard.security.types import ComposedMenuRecord, ThresholdPolicy

logger = logging.getLogger(__name__)


def filter_for_navigation(
    records: Iterable[ComposedMenuRecord],
    priority: int,
    policy: ThresholdPolicy = ThresholdPolicy.INHERITED,
) -> list[ComposedMenuRecord]:
    """
    Return the records visible to `priority`, in tree pre-order.

    Pass 1 walks from the roots. Disabled and hidden records are skipped with
    their subtrees; so is any record whose threshold (see effective_threshold)
    exceeds `priority`. Pass 2 drops sections left without children, deepest
    first, so emptying a nested section can empty its parent too. Sibling order
    is then renumbered 0..N-1.
    """

    index = build_menu_index(records)

    kept: list[ComposedMenuRecord] = []
    stack = list(reversed(index.children_of(None)))
    while stack:
        record = stack.pop()
        if not record.effective_is_active or record.effective_hidden:
            continue
        threshold = effective_threshold(record, index.by_id, policy)
        if threshold is not None and priority < threshold:
            continue
        kept.append(record)
        stack.extend(reversed(index.children_of(record.id)))

    surviving_children: dict[int, int] = {}
    dropped: set[int] = set()
    for record in reversed(kept):
        if record.is_section and surviving_children.get(record.id, 0) == 0:
            dropped.add(record.id)
            continue
        if record.parent_id is not None:
            surviving_children[record.parent_id] = surviving_children.get(record.parent_id, 0) + 1

    pruned = [r for r in kept if r.id not in dropped]
    if dropped:
        logger.debug("Navigation dropped empty sections ids=%s", sorted(dropped))
    return normalize_sibling_order(pruned)


@dataclass
class NavigationNode:
    record: ComposedMenuRecord
    children: list[NavigationNode] = field(default_factory=list)


def build_navigation_tree(records: Iterable[ComposedMenuRecord]) -> list[NavigationNode]:
    """Nest already-filtered records under their parents; siblings by effective_order."""

    index = build_menu_index(records)

    def build(parent_id: int | None) -> list[NavigationNode]:
        return [NavigationNode(record=r, children=build(r.id)) for r in index.children_of(parent_id)]

    return build(None)
