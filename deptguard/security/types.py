"""
Value types shared by the authorization core.

Everything here is immutable. Effective entities (EffectiveRole,
ComposedMenuRecord) are derived on demand and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


# ---- Enums ---------------------------------------------------------------------------


class MatchMode(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    REGEX = "regex"


class RoleOrigin(str, Enum):
    ROLE = "role"
    OVERRIDE = "override"
    CUSTOM = "custom"


class ComposeMode(str, Enum):
    """AUTHORIZATION keeps hidden nodes (still routable); LISTING drops template-hidden nodes."""

    AUTHORIZATION = "authorization"
    LISTING = "listing"


class DecisionReason(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    ALLOWED = "ALLOWED"


class ThresholdPolicy(str, Enum):
    """
    How a node's minimum priority is derived from its ancestor chain.

    MAX:       maximum min_priority over the node and all its ancestors.
    INHERITED: the outermost threshold on the chain wins outright; the node's
               own value only applies when no ancestor carries one.
    """

    MAX = "max"
    INHERITED = "inherited"


# ---- Role references (exactly one variant is ever set) --------------------------------


@dataclass(frozen=True)
class RoleId:
    id: int


@dataclass(frozen=True)
class DepartmentRoleId:
    id: int


RoleRef = Union[RoleId, DepartmentRoleId]


# ---- Role data -----------------------------------------------------------------------


@dataclass(frozen=True)
class RoleTemplate:
    """Globally defined role with fixed priority and capability flags."""

    id: int
    code: str
    name: str
    priority: int
    badge_color: str | None = None
    can_edit_data: bool = False
    can_download_data: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class RoleOverride:
    """
    Department-local cosmetic layer over a RoleTemplate.

    Carries no priority or capability fields: those always come from the template.
    """

    id: int
    department_id: int
    role_id: int
    is_enabled: bool = True
    name_override: str | None = None
    badge_color_override: str | None = None


@dataclass(frozen=True)
class CustomRole:
    """Independently defined department-local role."""

    id: int
    department_id: int
    code: str
    name: str
    priority: int
    badge_color: str | None = None
    can_edit_data: bool = False
    can_download_data: bool = False
    is_enabled: bool = True


DepartmentRoleOverlay = Union[RoleOverride, CustomRole]


@dataclass(frozen=True)
class EffectiveRole:
    code: str
    name: str
    priority: int
    badge_color: str | None
    can_edit_data: bool
    can_download_data: bool
    enabled_in_department: bool
    origin: RoleOrigin


# ---- Menu data -----------------------------------------------------------------------


@dataclass(frozen=True)
class MenuNode:
    """Menu/route template. Nodes form a forest through parent_id."""

    id: int
    title: str
    parent_id: int | None = None
    href: str | None = None
    match_mode: MatchMode = MatchMode.PREFIX
    pattern: str | None = None
    min_priority: int | None = None
    is_section: bool = False
    is_active: bool = True
    hidden: bool = False
    lock_hidden_override: bool = False
    order: int = 0
    key: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class MenuOverlay:
    """Per-department override of a MenuNode. None means "inherit the template value"."""

    department_id: int
    menu_id: int
    is_enabled: bool | None = None
    hidden_override: bool | None = None
    sort_order: int | None = None


@dataclass(frozen=True)
class ComposedMenuRecord:
    id: int
    title: str
    parent_id: int | None
    href: str | None
    match_mode: MatchMode
    pattern: str | None
    min_priority: int | None
    is_section: bool
    lock_hidden_override: bool
    template_hidden: bool
    template_order: int
    effective_is_active: bool
    effective_hidden: bool
    effective_order: int
    key: str | None = None
    icon: str | None = None


# ---- Identity and decisions ------------------------------------------------------------


@dataclass(frozen=True)
class Identity:
    """Authenticated user as seen by the guard."""

    user_id: int
    department_id: int
    role_ref: RoleRef
    effective_role: EffectiveRole | None = None

    @property
    def priority(self) -> int | None:
        if self.effective_role is None:
            return None
        return self.effective_role.priority


@dataclass(frozen=True)
class GuardDecision:
    reason: DecisionReason
    matched_id: int | None = None
    required_priority: int | None = None
    chain: tuple[int, ...] = ()

    @property
    def allowed(self) -> bool:
        return self.reason is DecisionReason.ALLOWED
