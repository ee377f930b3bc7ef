"""
Threshold resolution over the menu forest.

Both the guard and the navigation filter derive a node's threshold through
effective_threshold(); they differ only in the ThresholdPolicy they pass.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from deptguard.security.types import ComposedMenuRecord, ThresholdPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuIndex:
    by_id: Mapping[int, ComposedMenuRecord]
    children: Mapping[int | None, tuple[ComposedMenuRecord, ...]]

    def children_of(self, parent_id: int | None) -> tuple[ComposedMenuRecord, ...]:
        return self.children.get(parent_id, ())


def build_menu_index(records: Iterable[ComposedMenuRecord]) -> MenuIndex:
    """Index records by id and group children by parent, siblings in (effective_order, id) order."""

    by_id: dict[int, ComposedMenuRecord] = {}
    grouped: dict[int | None, list[ComposedMenuRecord]] = {}
    for record in records:
        by_id[record.id] = record
        grouped.setdefault(record.parent_id, []).append(record)

    children = {
        parent: tuple(sorted(bucket, key=lambda r: (r.effective_order, r.id)))
        for parent, bucket in grouped.items()
    }
    return MenuIndex(by_id=by_id, children=children)


def ancestor_chain(
    record: ComposedMenuRecord,
    by_id: Mapping[int, ComposedMenuRecord],
) -> list[ComposedMenuRecord]:
    """
    Return [record, parent, grandparent, ...] up to the root.

    The walk stops at a missing parent. A repeated id also stops it, so a
    malformed parent loop cannot hang the caller.
    """

    chain: list[ComposedMenuRecord] = []
    seen: set[int] = set()
    current: ComposedMenuRecord | None = record
    while current is not None and current.id not in seen:
        chain.append(current)
        seen.add(current.id)
        if current.parent_id is None:
            break
        parent = by_id.get(current.parent_id)
        if parent is None:
            logger.warning("Dangling menu parent id=%s parent_id=%s", current.id, current.parent_id)
        current = parent
    return chain


def threshold_of_chain(chain: Iterable[ComposedMenuRecord], policy: ThresholdPolicy) -> int | None:
    """Threshold for a chain ordered from the node up to the root; None when nothing applies."""

    values = [r.min_priority for r in chain if r.min_priority is not None]
    if not values:
        return None
    if policy is ThresholdPolicy.MAX:
        return max(values)
    # INHERITED: the outermost (closest to the root) threshold wins outright.
    return values[-1]


def effective_threshold(
    record: ComposedMenuRecord,
    by_id: Mapping[int, ComposedMenuRecord],
    policy: ThresholdPolicy = ThresholdPolicy.MAX,
) -> int | None:
    return threshold_of_chain(ancestor_chain(record, by_id), policy)


@dataclass(frozen=True)
class RequiredPriority:
    required: int
    chain: tuple[int, ...]


def compute_required_priority(
    record: ComposedMenuRecord,
    by_id: Mapping[int, ComposedMenuRecord],
) -> RequiredPriority:
    """
    Minimum role priority needed to reach `record`.

    Maximum min_priority over the record and all its ancestors, or 0 when no
    node on the chain carries one.
    """

    chain = ancestor_chain(record, by_id)
    threshold = threshold_of_chain(chain, ThresholdPolicy.MAX)
    return RequiredPriority(
        required=0 if threshold is None else threshold,
        chain=tuple(r.id for r in chain),
    )
