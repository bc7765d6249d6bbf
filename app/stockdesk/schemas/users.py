from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

Role = Literal["SUPERADMIN", "ADMIN", "MANAGER", "CASHIER", "WAREHOUSE"]
UserStatus = Literal["active", "inactive", "suspended"]


class UserCreateRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "username": "jdoe",
                "email": "jdoe@example.com",
                "password": "Welcome123",
                "role": "CASHIER",
                "full_name": "Jane Doe",
                "department": "Front of house",
            }
        }
    }

    username: str = Field(min_length=3, max_length=150)
    email: EmailStr
    password: str
    role: Role = "CASHIER"
    full_name: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    status: UserStatus = "active"


class UserUpdateRequest(BaseModel):
    email: EmailStr | None = None
    role: Role | None = None
    full_name: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    status: UserStatus | None = None
    password: str | None = None


class UserResponse(BaseModel):
    id: str
    tenant_id: str
    username: str
    email: str
    full_name: str | None
    department: str | None
    phone: str | None
    role: str
    status: str
    is_active: bool
    must_change_password: bool
    permissions: list[str]
    last_login_at: datetime | None
    created_at: datetime
    updated_at: datetime


class UserListResponse(BaseModel):
    rows: list[UserResponse]
    total: int


class UserDeleteResponse(BaseModel):
    id: str
    deleted: bool


class ProfileUpdateRequest(BaseModel):
    """Self-service fields; role and status are managed by admins only."""

    email: EmailStr | None = None
    full_name: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)


class ChangePasswordRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {"current_password": "OldPass123", "new_password": "NewPass4567"}
        }
    }

    current_password: str
    new_password: str


class ChangePasswordResponse(BaseModel):
    ok: bool
    message: str
    access_token: str
    trace_id: str
