from __future__ import annotations

from fastapi import APIRouter, Depends

from deptguard.schemas.security import EnabledIn, HiddenIn, MenuRecordOut, MoveIn
from deptguard.security.dependencies import get_current_identity, get_menu_composer, get_overlay_service, guard_path
from deptguard.security.menu_compose import MenuComposer, normalize_sibling_order
from deptguard.security.overlays import OverlayService
from deptguard.security.types import ComposeMode, Identity
from deptguard.settings import get_settings

router = APIRouter(prefix="/admin/menus", tags=["admin"])

_guard = guard_path(get_settings().admin_menus_path)


@router.get("", response_model=list[MenuRecordOut], dependencies=[Depends(_guard)])
def list_menus(
    identity: Identity = Depends(get_current_identity),
    composer: MenuComposer = Depends(get_menu_composer),
) -> list[MenuRecordOut]:
    """Department's editable menus (template-hidden nodes excluded), sibling order renumbered 0..N-1."""

    records = normalize_sibling_order(composer.compose_menus(identity.department_id, ComposeMode.LISTING))
    return [MenuRecordOut.model_validate(r) for r in records]


@router.put("/{menu_id}/hidden", status_code=204)
def set_hidden(
    menu_id: int,
    body: HiddenIn,
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> None:
    service.set_hidden(identity, menu_id, body.hidden)


@router.put("/{menu_id}/enabled", status_code=204)
def set_enabled(
    menu_id: int,
    body: EnabledIn,
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> None:
    service.set_enabled(identity, menu_id, body.enabled)


@router.post("/{menu_id}/move", response_model=list[int])
def move(
    menu_id: int,
    body: MoveIn,
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> list[int]:
    return service.move_order(identity, menu_id, body.direction)
