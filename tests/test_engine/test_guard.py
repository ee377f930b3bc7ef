"""Tests for the guard decision engine."""

import pytest

from deptguard.security.errors import DataSourceError, PermissionDenied
from deptguard.security.guard import (
    GuardOptions,
    decide,
    decide_for_department,
    enumerate_ancestor_paths,
    require_admin,
)
from deptguard.security.types import DecisionReason, Identity, MatchMode, RoleId


@pytest.fixture
def settings_tree(make_record):
    return [
        make_record(1, is_section=True, min_priority=100, title="Settings"),
        make_record(2, parent_id=1, href="/users", title="Users"),
        make_record(3, parent_id=2, href="/users", match_mode=MatchMode.EXACT, title="User list"),
        make_record(4, href="/dashboard", match_mode=MatchMode.EXACT, title="Dashboard"),
        make_record(5, href="/reports", min_priority=30, title="Reports"),
    ]


def test_child_of_restricted_section_is_forbidden(settings_tree, make_identity):
    """Section at 100, child without threshold, caller at 50: FORBIDDEN with required 100."""

    decision = decide("/users", make_identity(50), settings_tree)

    assert decision.reason is DecisionReason.FORBIDDEN
    assert decision.allowed is False
    assert decision.required_priority == 100
    assert decision.matched_id == 3
    assert decision.chain == (3, 2, 1)


def test_allowed_carries_audit_fields(settings_tree, make_identity):
    decision = decide("/users/42", make_identity(100), settings_tree)

    assert decision.reason is DecisionReason.ALLOWED
    assert decision.allowed is True
    assert decision.matched_id == 2
    assert decision.required_priority == 100


def test_unrestricted_path_allows_priority_zero(settings_tree, make_identity):
    decision = decide("/dashboard", make_identity(0), settings_tree)

    assert decision.reason is DecisionReason.ALLOWED
    assert decision.required_priority == 0


def test_no_identity_is_unauthenticated(settings_tree):
    assert decide("/dashboard", None, settings_tree).reason is DecisionReason.UNAUTHENTICATED


def test_identity_without_effective_role_is_unauthenticated(settings_tree):
    identity = Identity(user_id=1, department_id=1, role_ref=RoleId(1))

    assert decide("/dashboard", identity, settings_tree).reason is DecisionReason.UNAUTHENTICATED


def test_unmatched_path_is_not_found(settings_tree, make_identity):
    decision = decide("/nowhere", make_identity(100), settings_tree)

    assert decision.reason is DecisionReason.NOT_FOUND
    assert decision.matched_id is None


def test_lenient_mode_walks_ancestor_paths(make_record, make_identity):
    records = [make_record(1, href="/dashboard", match_mode=MatchMode.EXACT, min_priority=30)]
    lenient = GuardOptions(strict_not_found=False)

    allowed = decide("/dashboard/widgets/1", make_identity(30), records, lenient)
    forbidden = decide("/dashboard/widgets/1", make_identity(10), records, lenient)
    strict = decide("/dashboard/widgets/1", make_identity(30), records)

    assert allowed.reason is DecisionReason.ALLOWED
    assert allowed.matched_id == 1
    assert forbidden.reason is DecisionReason.FORBIDDEN
    assert strict.reason is DecisionReason.NOT_FOUND


@pytest.mark.parametrize("path", ["/users", "/users/1", "/dashboard", "/reports/q3", "/nowhere"])
def test_decision_is_monotonic_in_priority(settings_tree, make_identity, path):
    priorities = [0, 10, 29, 30, 50, 99, 100, 1000]
    allowed = [decide(path, make_identity(p), settings_tree).allowed for p in priorities]

    # once allowed, every higher priority stays allowed
    first = allowed.index(True) if True in allowed else len(allowed)
    assert all(allowed[first:])


def test_enumerate_ancestor_paths():
    assert enumerate_ancestor_paths("/a/b/c") == ["/a/b/c", "/a/b", "/a", "/"]
    assert enumerate_ancestor_paths("/") == ["/"]
    assert enumerate_ancestor_paths("/a/b/") == ["/a/b", "/a", "/"]


class _StaticComposer:
    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error
        self.requested = []

    def compose_menus(self, department_id, mode):
        self.requested.append((department_id, mode))
        if self.error is not None:
            raise self.error
        return list(self.records)


def test_decide_for_department_composes_callers_department(settings_tree, make_identity):
    composer = _StaticComposer(settings_tree)

    decision = decide_for_department("/reports", make_identity(30, department_id=7), composer)

    assert decision.allowed
    assert composer.requested[0][0] == 7


def test_decide_for_department_fails_closed_on_storage_error(make_identity):
    composer = _StaticComposer(error=DataSourceError("down"))

    decision = decide_for_department("/dashboard", make_identity(1000), composer)

    assert decision.reason is DecisionReason.FORBIDDEN


def test_decide_for_department_without_identity_skips_composition():
    composer = _StaticComposer()

    decision = decide_for_department("/dashboard", None, composer)

    assert decision.reason is DecisionReason.UNAUTHENTICATED
    assert composer.requested == []


def test_require_admin_checks_path_and_threshold(make_record, make_identity):
    records = [make_record(1, href="/masters/menus", min_priority=50)]

    assert require_admin(make_identity(100), 100, "/masters/menus", records).user_id == 1

    with pytest.raises(PermissionDenied, match="FORBIDDEN"):
        require_admin(make_identity(40), 100, "/masters/menus", records)
    with pytest.raises(PermissionDenied, match="below administrative threshold"):
        require_admin(make_identity(60), 100, "/masters/menus", records)
    with pytest.raises(PermissionDenied, match="NOT_FOUND"):
        require_admin(make_identity(100), 100, "/masters/roles", records)


def test_require_admin_without_path(make_identity):
    assert require_admin(make_identity(100), 100).priority == 100

    with pytest.raises(PermissionDenied):
        require_admin(None, 100)
    with pytest.raises(PermissionDenied):
        require_admin(make_identity(99), 100)
