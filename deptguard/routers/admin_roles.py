from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from deptguard.schemas.security import AssignableRoleOut, CustomRoleIn, DepartmentRoleOut, RoleOverrideIn
from deptguard.security.dependencies import get_current_identity, get_overlay_service, guard_path
from deptguard.security.overlays import OverlayService
from deptguard.security.types import Identity
from deptguard.settings import get_settings

router = APIRouter(prefix="/admin", tags=["admin"])

_guard = guard_path(get_settings().admin_roles_path)


@router.get("/department-roles/assignable", response_model=list[AssignableRoleOut], dependencies=[Depends(_guard)])
def assignable_roles(
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> list[AssignableRoleOut]:
    return service.list_assignable_roles(identity)


@router.post("/department-roles", response_model=DepartmentRoleOut, status_code=status.HTTP_201_CREATED, dependencies=[Depends(_guard)])
def create_custom_role(
    body: CustomRoleIn,
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> DepartmentRoleOut:
    return DepartmentRoleOut.model_validate(service.create_custom_role(identity, body))


@router.put("/department-roles/{overlay_id}", response_model=DepartmentRoleOut, dependencies=[Depends(_guard)])
def update_custom_role(
    overlay_id: int,
    body: CustomRoleIn,
    expected_version: int | None = Query(default=None),
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> DepartmentRoleOut:
    return DepartmentRoleOut.model_validate(service.update_custom_role(identity, overlay_id, body, expected_version))


@router.put("/roles/{role_id}/override", response_model=DepartmentRoleOut, dependencies=[Depends(_guard)])
def upsert_role_override(
    role_id: int,
    body: RoleOverrideIn,
    expected_version: int | None = Query(default=None),
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> DepartmentRoleOut:
    return DepartmentRoleOut.model_validate(service.upsert_role_override(identity, role_id, body, expected_version))


@router.delete("/department-roles/{overlay_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(_guard)])
def delete_department_role(
    overlay_id: int,
    identity: Identity = Depends(get_current_identity),
    service: OverlayService = Depends(get_overlay_service),
) -> None:
    service.delete_department_role(identity, overlay_id)
