"""Tests for the navigation filter and tree builder."""

import pytest

from deptguard.security.navigation import build_navigation_tree, filter_for_navigation
from deptguard.security.types import ThresholdPolicy


@pytest.fixture
def menu(make_record):
    return [
        make_record(1, is_section=True, title="Dashboard", order=0),
        make_record(2, parent_id=1, href="/dashboard", order=0),
        make_record(3, is_section=True, min_priority=100, title="Settings", order=1),
        make_record(4, parent_id=3, is_section=True, title="Masters", order=0),
        make_record(5, parent_id=4, href="/masters/roles", order=3),
        make_record(6, parent_id=4, href="/masters/menus", order=7),
        make_record(7, is_section=True, title="Docs", order=2),
        make_record(8, parent_id=7, href="/tutorial", hidden=True, order=0),
        make_record(9, parent_id=7, href="/changelog", active=False, order=1),
        make_record(10, is_section=True, title="Reports", min_priority=20, order=3),
        make_record(11, parent_id=10, href="/reports/daily", min_priority=50, order=0),
    ]


def _ids(records):
    return [r.id for r in records]


def test_low_priority_sees_only_unrestricted_items(menu):
    visible = filter_for_navigation(menu, 10)

    assert _ids(visible) == [1, 2]


def test_admin_sees_settings_subtree_with_dense_orders(menu):
    visible = filter_for_navigation(menu, 100)

    by_id = {r.id: r for r in visible}
    assert _ids(visible) == [1, 2, 3, 4, 5, 6, 10, 11]
    assert (by_id[5].effective_order, by_id[6].effective_order) == (0, 1)
    assert [by_id[i].effective_order for i in (1, 3, 10)] == [0, 1, 2]


def test_sections_emptied_by_hidden_or_disabled_children_are_dropped(menu):
    visible = filter_for_navigation(menu, 1000)

    assert 7 not in _ids(visible)
    assert 8 not in _ids(visible)
    assert 9 not in _ids(visible)


def test_nested_empty_sections_collapse(make_record):
    records = [
        make_record(1, is_section=True),
        make_record(2, parent_id=1, is_section=True),
        make_record(3, parent_id=2, href="/deep", min_priority=90),
        make_record(4, href="/top"),
    ]

    assert _ids(filter_for_navigation(records, 50, ThresholdPolicy.MAX)) == [4]


@pytest.mark.parametrize("priority", [0, 10, 20, 50, 100, 1000])
def test_never_emits_childless_section(menu, priority):
    visible = filter_for_navigation(menu, priority)

    parents = {r.parent_id for r in visible}
    assert all(r.id in parents for r in visible if r.is_section)


def test_inherited_policy_lets_outer_threshold_win(menu):
    """Reports is at 20 and its child at 50: inherited uses 20, max uses 50."""

    inherited = filter_for_navigation(menu, 30, ThresholdPolicy.INHERITED)
    strict = filter_for_navigation(menu, 30, ThresholdPolicy.MAX)

    assert 11 in _ids(inherited)
    assert 10 not in _ids(strict)
    assert 11 not in _ids(strict)


def test_output_is_deterministic(menu):
    assert filter_for_navigation(menu, 100) == filter_for_navigation(list(reversed(menu)), 100)


def test_build_navigation_tree_nests_children(menu):
    tree = build_navigation_tree(filter_for_navigation(menu, 100))

    assert [n.record.id for n in tree] == [1, 3, 10]
    settings = tree[1]
    assert [n.record.id for n in settings.children] == [4]
    assert [n.record.id for n in settings.children[0].children] == [5, 6]
    assert tree[0].children[0].children == []
