"""
Department-scoped authorization core.

Pure functions over immutable types; nothing here depends on FastAPI or on
the database. Storage adapters live in deptguard.db, administrative writes in
deptguard.security.overlays.
"""

from .effective_role import resolve_effective_role
from .errors import Conflict, DataSourceError, InvalidPattern, NotFoundReference, PermissionDenied
from .guard import GuardOptions, decide, decide_for_department
from .matcher import pick_best_match
from .menu_compose import MenuComposer, compose_menu_records
from .navigation import build_navigation_tree, filter_for_navigation
from .priority import compute_required_priority, effective_threshold
from .types import ComposeMode, DecisionReason, GuardDecision, Identity

__all__ = [
    "ComposeMode",
    "Conflict",
    "DataSourceError",
    "DecisionReason",
    "GuardDecision",
    "GuardOptions",
    "Identity",
    "InvalidPattern",
    "MenuComposer",
    "NotFoundReference",
    "PermissionDenied",
    "build_navigation_tree",
    "compose_menu_records",
    "compute_required_priority",
    "decide",
    "decide_for_department",
    "effective_threshold",
    "filter_for_navigation",
    "pick_best_match",
    "resolve_effective_role",
]
