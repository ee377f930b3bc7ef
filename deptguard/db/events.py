from __future__ import annotations

from sqlalchemy import event, select

from deptguard.models.security import DepartmentMenu, Menu
from deptguard.security.errors import PermissionDenied


@event.listens_for(DepartmentMenu, "before_insert")
@event.listens_for(DepartmentMenu, "before_update")
def _reject_locked_hidden_override(mapper, connection, target: DepartmentMenu) -> None:
    """
    Write-boundary check for lock_hidden_override.

    Any flush that would store hidden_override = true against a locked menu is
    refused, whichever code path issued it. The session's transaction rolls
    back, so stored state is unchanged.
    """

    if target.hidden_override is not True:
        return

    locked = connection.execute(
        select(Menu.lock_hidden_override).where(Menu.id == target.menu_id)
    ).scalar_one_or_none()
    if locked:
        raise PermissionDenied(f"menu {target.menu_id} does not allow hiding")
