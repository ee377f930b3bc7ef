from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from deptguard.db.sources import SqlRoleSource
from deptguard.models.security import User
from deptguard.security.effective_role import resolve_effective_role
from deptguard.security.types import DepartmentRoleId, Identity, RoleId, RoleRef

logger = logging.getLogger(__name__)


def extract_user_id(request: Request, header_name: str = "Authorization", bearer_prefix: str = "Bearer") -> int | None:
    """
    Demo auth: extract bearer token and treat it as a user_id.

    - Input: `Authorization: Bearer <token>`
    - Demo behavior: `<token>` must be an integer user id
    - Production: replace with the real session/identity provider lookup
    """

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
        )

    try:
        return int(token)
    except ValueError as exc:
        logger.warning("Bearer token not an int (demo expects user_id) path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid bearer token for demo (expected integer user id).",
        ) from exc


def role_ref_for(user: User) -> RoleRef | None:
    """Map the user's two nullable columns to a RoleRef; None when the XOR is violated."""

    if user.department_role_id is not None and user.role_id is None:
        return DepartmentRoleId(user.department_role_id)
    if user.role_id is not None and user.department_role_id is None:
        return RoleId(user.role_id)
    logger.warning("User has an invalid role reference user_id=%s", user.id)
    return None


def load_user(db: Session, user_id: int) -> User | None:
    user = db.execute(
        select(User).where(User.id == user_id).options(selectinload(User.department))
    ).scalar_one_or_none()

    if user is None or not user.is_active:
        return None
    return user


def load_identity(db: Session, user_id: int) -> Identity | None:
    """
    Build the guard's view of a user: department, role reference and effective role.

    Returns None for unknown or inactive users, invalid role references,
    unresolvable roles and storage failures.
    """

    try:
        user = load_user(db, user_id)
    except SQLAlchemyError as exc:
        logger.warning("User lookup failed user_id=%s: %s", user_id, type(exc).__name__)
        return None
    if user is None:
        return None

    role_ref = role_ref_for(user)
    if role_ref is None:
        return None

    effective = resolve_effective_role(SqlRoleSource(session=db), user.department_id, role_ref)
    if effective is None:
        return None

    return Identity(
        user_id=user.id,
        department_id=user.department_id,
        role_ref=role_ref,
        effective_role=effective,
    )
