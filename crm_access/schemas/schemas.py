"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, Dict, Any
from datetime import datetime


# ---- Auth ----
class LoginRequest(BaseModel):
    # Either field may carry the identifier: an email or a display name
    login: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def require_identifier(self):
        if not (self.login or self.email or "").strip():
            raise ValueError("Username/email and password are required")
        return self

    @property
    def identifier(self) -> str:
        return (self.login or self.email or "").strip()


class UserProfile(BaseModel):
    id: int
    email: str
    name: str
    role: str
    department: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    status: str
    branch_id: Optional[int] = None
    branch_name: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    permissions: Dict[str, bool] = {}

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserProfile


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., alias="newPassword")

    class Config:
        populate_by_name = True


# ---- User ----
class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: str
    department: Optional[str] = None
    phone: Optional[str] = None
    status: str
    branch_id: Optional[int] = None
    branch_name: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignableUserOut(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    branch_id: Optional[int] = None


class UserUpdateRequest(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None
    branch_id: Optional[int] = None


class PasswordChangeRequest(BaseModel):
    new_password: str = Field(..., alias="newPassword")

    class Config:
        populate_by_name = True


class PeerOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    department: Optional[str] = None
    branch_id: Optional[int] = None

    class Config:
        from_attributes = True


# ---- Sections ----
class SectionOut(BaseModel):
    key: str
    label: str


class SectionOverridesRequest(BaseModel):
    permissions: Dict[str, bool]


# ---- Branch ----
class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None


class BranchOut(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    status: str
    user_count: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    changes: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None
