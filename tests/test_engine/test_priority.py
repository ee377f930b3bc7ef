"""Tests for threshold resolution over the ancestor chain."""

import logging

from deptguard.security.priority import (
    ancestor_chain,
    build_menu_index,
    compute_required_priority,
    effective_threshold,
)
from deptguard.security.types import ThresholdPolicy


def _by_id(records):
    return build_menu_index(records).by_id


def test_max_over_chain_node_higher_than_ancestor(make_record):
    """Node at 50 under an ancestor at 20 requires 50."""

    records = [
        make_record(1, is_section=True, min_priority=20),
        make_record(2, parent_id=1, href="/a"),
        make_record(3, parent_id=2, href="/a/b", min_priority=50),
    ]

    required = compute_required_priority(records[2], _by_id(records))

    assert required.required == 50
    assert required.chain == (3, 2, 1)


def test_ancestor_threshold_applies_to_unrestricted_child(make_record):
    records = [
        make_record(1, is_section=True, min_priority=100),
        make_record(2, parent_id=1, href="/settings"),
    ]

    assert compute_required_priority(records[1], _by_id(records)).required == 100


def test_no_threshold_anywhere_requires_zero(make_record):
    records = [make_record(1, href="/open"), make_record(2, parent_id=1, href="/open/x")]

    assert compute_required_priority(records[1], _by_id(records)).required == 0
    assert effective_threshold(records[1], _by_id(records)) is None


def test_inherited_policy_uses_outermost_threshold(make_record):
    records = [
        make_record(1, is_section=True, min_priority=20),
        make_record(2, parent_id=1, href="/a", min_priority=50),
    ]
    by_id = _by_id(records)

    assert effective_threshold(records[1], by_id, ThresholdPolicy.INHERITED) == 20
    assert effective_threshold(records[1], by_id, ThresholdPolicy.MAX) == 50


def test_inherited_policy_falls_back_to_own_threshold(make_record):
    records = [
        make_record(1, is_section=True),
        make_record(2, parent_id=1, href="/a", min_priority=50),
    ]

    assert effective_threshold(records[1], _by_id(records), ThresholdPolicy.INHERITED) == 50


def test_ancestor_chain_stops_on_cycle(make_record):
    records = [
        make_record(1, parent_id=2, href="/a", min_priority=10),
        make_record(2, parent_id=1, href="/b", min_priority=30),
    ]

    chain = ancestor_chain(records[0], _by_id(records))

    assert [r.id for r in chain] == [1, 2]
    assert compute_required_priority(records[0], _by_id(records)).required == 30


def test_ancestor_chain_warns_on_dangling_parent(make_record, caplog):
    record = make_record(5, parent_id=99, href="/x", min_priority=10)

    with caplog.at_level(logging.WARNING, logger="deptguard.security.priority"):
        chain = ancestor_chain(record, {5: record})

    assert [r.id for r in chain] == [5]
    assert "Dangling menu parent" in caplog.text


def test_menu_index_orders_children(make_record):
    records = [
        make_record(3, parent_id=1, order=1),
        make_record(2, parent_id=1, order=1),
        make_record(4, parent_id=1, order=0),
        make_record(1, is_section=True),
    ]

    index = build_menu_index(records)

    assert [r.id for r in index.children_of(1)] == [4, 2, 3]
    assert index.children_of(42) == ()
