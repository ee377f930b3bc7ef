from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from deptguard.db.session import get_db
from deptguard.models.security import Department, User
from deptguard.schemas.security import (
    DepartmentOut,
    EffectiveRoleOut,
    GuardDecisionOut,
    GuardRequest,
    NavigationNodeOut,
    UserOut,
)
from deptguard.security.dependencies import (
    get_current_identity,
    get_guard_options,
    get_menu_composer,
    get_optional_identity,
)
from deptguard.security.errors import DeptGuardError
from deptguard.security.guard import GuardOptions, decide_for_department
from deptguard.security.menu_compose import MenuComposer
from deptguard.security.navigation import NavigationNode, build_navigation_tree, filter_for_navigation
from deptguard.security.types import ComposeMode, Identity
from deptguard.settings import Settings, get_settings

router = APIRouter(tags=["me"])


def _to_out(node: NavigationNode) -> NavigationNodeOut:
    record = node.record
    return NavigationNodeOut(
        id=record.id,
        title=record.title,
        href=record.href,
        icon=record.icon,
        is_section=record.is_section,
        order=record.effective_order,
        children=[_to_out(child) for child in node.children],
    )


@router.get("/me", response_model=UserOut)
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)) -> UserOut:
    user = db.get(User, identity.user_id)
    department = db.get(Department, identity.department_id)
    if user is None or department is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user")
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        department=DepartmentOut.model_validate(department),
        effective_role=EffectiveRoleOut.model_validate(identity.effective_role),
    )


@router.get("/me/navigation", response_model=list[NavigationNodeOut])
def my_navigation(
    identity: Identity = Depends(get_current_identity),
    composer: MenuComposer = Depends(get_menu_composer),
    settings: Settings = Depends(get_settings),
) -> list[NavigationNodeOut]:
    try:
        records = composer.compose_menus(identity.department_id, ComposeMode.LISTING)
    except DeptGuardError:
        # Navigation is cosmetic; an empty tree is the safe fallback.
        return []
    visible = filter_for_navigation(records, identity.priority or 0, settings.navigation_threshold_policy)
    return [_to_out(node) for node in build_navigation_tree(visible)]


@router.post("/guard/decide", response_model=GuardDecisionOut)
def decide_path(
    body: GuardRequest,
    identity: Identity | None = Depends(get_optional_identity),
    composer: MenuComposer = Depends(get_menu_composer),
    options: GuardOptions = Depends(get_guard_options),
) -> GuardDecisionOut:
    """Decision for a page path, for renderers that guard views outside this API."""

    decision = decide_for_department(body.path, identity, composer, options)
    return GuardDecisionOut.model_validate(decision)
