from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from deptguard.db.session import get_db
from deptguard.security.auth import extract_user_id, load_identity
from deptguard.security.guard import GuardOptions, decide_for_department
from deptguard.security.menu_compose import MenuComposer
from deptguard.security.overlays import OverlayService
from deptguard.security.types import DecisionReason, GuardDecision, Identity
from deptguard.settings import Settings, get_settings

_DECISION_STATUS = {
    DecisionReason.UNAUTHENTICATED: (status.HTTP_401_UNAUTHORIZED, "Authentication required"),
    DecisionReason.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "Not found"),
    DecisionReason.FORBIDDEN: (status.HTTP_403_FORBIDDEN, "Insufficient role priority"),
}


def get_menu_composer(request: Request) -> MenuComposer:
    composer = getattr(request.app.state, "menu_composer", None)
    if composer is None:
        raise RuntimeError("Menu composer not configured. Did app startup run?")
    return composer


def get_guard_options(settings: Settings = Depends(get_settings)) -> GuardOptions:
    return GuardOptions(strict_not_found=settings.strict_not_found)


def get_optional_identity(request: Request, db: Session = Depends(get_db)) -> Identity | None:
    user_id = extract_user_id(request)
    if user_id is None:
        return None
    identity = load_identity(db, user_id)
    request.state.identity = identity
    return identity


def get_current_identity(identity: Identity | None = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return identity


def raise_for_decision(decision: GuardDecision) -> None:
    if decision.allowed:
        return
    code, detail = _DECISION_STATUS[decision.reason]
    raise HTTPException(status_code=code, detail=detail)


def guard_path(path: str) -> Callable[..., GuardDecision]:
    """
    Dependency factory: the request proceeds only if the guard allows `path`
    for the caller.
    """

    def dependency(
        identity: Identity | None = Depends(get_optional_identity),
        composer: MenuComposer = Depends(get_menu_composer),
        options: GuardOptions = Depends(get_guard_options),
    ) -> GuardDecision:
        decision = decide_for_department(path, identity, composer, options)
        raise_for_decision(decision)
        return decision

    return dependency


def get_overlay_service(
    db: Session = Depends(get_db),
    composer: MenuComposer = Depends(get_menu_composer),
    settings: Settings = Depends(get_settings),
    options: GuardOptions = Depends(get_guard_options),
) -> OverlayService:
    return OverlayService(
        db,
        composer,
        admin_threshold=settings.admin_priority_threshold,
        menus_path=settings.admin_menus_path,
        roles_path=settings.admin_roles_path,
        options=options,
    )
