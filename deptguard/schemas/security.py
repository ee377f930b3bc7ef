from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from deptguard.security.types import DecisionReason, MatchMode, RoleOrigin

# Custom roles stay below the administrative threshold.
CUSTOM_ROLE_PRIORITY_MAX = 99

_CODE_PATTERN = r"^[A-Z][A-Z0-9_]*$"
_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


# ---- Write payloads ------------------------------------------------------------------


class CustomRoleIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=2, max_length=50, pattern=_CODE_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    priority: int = Field(ge=0, le=CUSTOM_ROLE_PRIORITY_MAX)
    badge_color: str | None = Field(default=None, pattern=_COLOR_PATTERN)
    is_enabled: bool = True
    can_edit_data: bool = False
    can_download_data: bool = False
    remarks: str | None = Field(default=None, max_length=255)


class RoleOverrideIn(BaseModel):
    """Only presentation and on/off state; priority and capability flags are not accepted."""

    model_config = ConfigDict(extra="forbid")

    is_enabled: bool = True
    name_override: str | None = Field(default=None, min_length=1, max_length=100)
    badge_color_override: str | None = Field(default=None, pattern=_COLOR_PATTERN)


class HiddenIn(BaseModel):
    hidden: bool


class EnabledIn(BaseModel):
    enabled: bool


class MoveIn(BaseModel):
    direction: Literal["up", "down"]


class GuardRequest(BaseModel):
    path: str = Field(min_length=1, max_length=2048)


# ---- Responses -----------------------------------------------------------------------


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str


class EffectiveRoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    priority: int
    badge_color: str | None
    can_edit_data: bool
    can_download_data: bool
    enabled_in_department: bool
    origin: RoleOrigin


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    department: DepartmentOut
    effective_role: EffectiveRoleOut


class MenuRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    key: str | None
    parent_id: int | None
    title: str
    href: str | None
    icon: str | None
    match_mode: MatchMode
    pattern: str | None
    min_priority: int | None
    is_section: bool
    lock_hidden_override: bool
    effective_is_active: bool
    effective_hidden: bool
    effective_order: int


class NavigationNodeOut(BaseModel):
    id: int
    title: str
    href: str | None
    icon: str | None
    is_section: bool
    order: int
    children: list[NavigationNodeOut] = Field(default_factory=list)


class GuardDecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reason: DecisionReason
    allowed: bool
    matched_id: int | None
    required_priority: int | None


class DepartmentRoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    department_id: int
    role_id: int | None
    is_enabled: bool
    name_override: str | None
    badge_color_override: str | None
    code: str | None
    name: str | None
    priority: int | None
    badge_color: str | None
    can_edit_data: bool
    can_download_data: bool
    remarks: str | None
    version: int


class AssignableRoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: str
    label: str
    priority: int
    disabled: bool = False
