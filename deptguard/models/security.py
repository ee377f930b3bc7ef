from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from deptguard.db.base import Base
from deptguard.security.types import MatchMode


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    users: Mapped[list["User"]] = relationship(back_populates="department")
    department_roles: Mapped[list["DepartmentRole"]] = relationship(back_populates="department")


class Role(Base):
    """Global role template. Priority and capability flags are only ever set here."""

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    badge_color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    can_edit_data: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_download_data: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (CheckConstraint("priority >= 0", name="ck_roles_priority_non_negative"),)

    department_roles: Mapped[list["DepartmentRole"]] = relationship(back_populates="role")


class DepartmentRole(Base):
    """
    Department-local role overlay.

    override: role_id set, only is_enabled / name_override / badge_color_override used.
    custom:   role_id NULL, own code / name / priority / flags.
    """

    __tablename__ = "department_roles"
    __table_args__ = (
        UniqueConstraint("department_id", "role_id", name="uq_department_roles_override"),
        UniqueConstraint("department_id", "code", name="uq_department_roles_code"),
        CheckConstraint(
            "(role_id IS NOT NULL AND code IS NULL AND name IS NULL AND priority IS NULL)"
            " OR (role_id IS NULL AND code IS NOT NULL AND name IS NOT NULL AND priority IS NOT NULL"
            " AND name_override IS NULL AND badge_color_override IS NULL)",
            name="ck_department_roles_variant",
        ),
        CheckConstraint("priority IS NULL OR priority >= 0", name="ck_department_roles_priority"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    role_id: Mapped[int | None] = mapped_column(ForeignKey("roles.id"), nullable=True, index=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # override
    name_override: Mapped[str | None] = mapped_column(String(100), nullable=True)
    badge_color_override: Mapped[str | None] = mapped_column(String(7), nullable=True)

    # custom
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    badge_color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    can_edit_data: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_download_data: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    remarks: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    department: Mapped[Department] = relationship(back_populates="department_roles")
    role: Mapped[Role | None] = relationship(back_populates="department_roles")

    @property
    def is_custom(self) -> bool:
        return self.role_id is None


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username"),
        UniqueConstraint("email"),
        CheckConstraint(
            "(role_id IS NOT NULL AND department_role_id IS NULL)"
            " OR (role_id IS NULL AND department_role_id IS NOT NULL)",
            name="ck_users_role_reference_xor",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)

    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    role_id: Mapped[int | None] = mapped_column(ForeignKey("roles.id"), nullable=True)
    department_role_id: Mapped[int | None] = mapped_column(ForeignKey("department_roles.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    department: Mapped[Department] = relationship(back_populates="users")


class Menu(Base):
    """Menu/route template. Parent references form a forest."""

    __tablename__ = "menus"
    __table_args__ = (
        CheckConstraint("min_priority IS NULL OR min_priority >= 0", name="ck_menus_min_priority"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("menus.id"), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    href: Mapped[str | None] = mapped_column(String(255), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    match_mode: Mapped[MatchMode] = mapped_column(
        Enum(MatchMode, name="menu_match_mode", values_callable=lambda e: [m.value for m in e]),
        default=MatchMode.PREFIX,
        nullable=False,
    )
    pattern: Mapped[str | None] = mapped_column(String(255), nullable=True)
    min_priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_section: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lock_hidden_override: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    parent: Mapped["Menu | None"] = relationship(remote_side="Menu.id")


class DepartmentMenu(Base):
    """Per-department menu overlay. NULL columns inherit the template value."""

    __tablename__ = "department_menus"
    __table_args__ = (UniqueConstraint("department_id", "menu_id", name="uq_department_menus"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    menu_id: Mapped[int] = mapped_column(ForeignKey("menus.id"), nullable=False, index=True)
    is_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    hidden_override: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    menu: Mapped[Menu] = relationship()
