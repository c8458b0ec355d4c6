from __future__ import annotations

from pydantic import Field

from warehouse_ops.schemas.common import CamelModel


class LoginIn(CamelModel):
    employee_no: str = ""
    password: str = ""


class LoginUserOut(CamelModel):
    id: str
    employee_no: str
    full_name: str
    role: str | None
    department: str | None
    email: str | None


class LoginOut(CamelModel):
    success: bool = True
    user: LoginUserOut


class MeOut(CamelModel):
    success: bool = True
    id: str
    employee_no: str
    full_name: str
    role: str | None
    department: str | None
    email: str | None
    branch: str | None
    permissions: dict[str, list[str]] | None


class UserOut(CamelModel):
    id: str
    employee_no: str
    full_name: str
    role: str | None
    branch: str | None
    department: str | None
    is_active: bool
    permissions: dict[str, list[str]] | None


class RoleOut(CamelModel):
    id: int
    name: str
    description: str | None
    permissions: list[str]


class RoleIn(CamelModel):
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)
