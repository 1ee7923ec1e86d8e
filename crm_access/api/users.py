"""Users API router (accounts and section permissions)."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from crm_access.db.session import get_db
from crm_access.schemas.schemas import (
    AssignableUserOut, UserOut, UserCreateRequest, UserUpdateRequest, PasswordChangeRequest,
    SectionOut, SectionOverridesRequest, MessageResponse,
)
from crm_access.services.auth_service import auth_service
from crm_access.services.section_service import section_service, ALL_SECTIONS
from crm_access.core.audit import AuditRoute, audited
from crm_access.core.exceptions import Forbidden
from crm_access.core.permissions import RequireRole, can_access_record, normalize_role, require_admin
from crm_access.core.security import Claims, get_current_claims

router = APIRouter(prefix="/users", tags=["users"], route_class=AuditRoute)

require_user_reader = RequireRole("admin", "executive", "manager")


@router.get("/sections", response_model=List[SectionOut])
async def list_sections(claims: Claims = Depends(get_current_claims)):
    """All feature sections whose visibility can be toggled."""
    return ALL_SECTIONS


@router.get("/assignable", response_model=List[AssignableUserOut])
async def list_assignable(
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Active accounts that tasks, meetings and calls can be assigned to."""
    return auth_service.list_assignable(db)


@router.get("/", response_model=List[UserOut])
async def list_users(
    department: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_user_reader),
):
    """List users (admin/executive/manager; managers see their department)."""
    return auth_service.list_users(db, claims, department=department)


@router.post(
    "/",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audited("create", "user"))],
)
def create_user(
    body: UserCreateRequest,
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_admin),
):
    """Create an account (admin only)."""
    return auth_service.create_user(
        db,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        department=body.department,
        phone=body.phone,
        branch_id=body.branch_id,
        created_by=claims.id,
    )


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Users can view their own profile; admins and managers can view others."""
    if claims.id != user_id and normalize_role(claims.role) not in ("admin", "manager"):
        raise Forbidden()
    user = auth_service.get_user(db, user_id)
    if claims.id != user_id and not can_access_record(claims, user):
        raise Forbidden()
    return user


@router.put(
    "/{user_id}",
    response_model=UserOut,
    dependencies=[Depends(audited("update", "user"))],
)
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Update a profile; role, status and branch are admin-only."""
    return auth_service.update_user(db, claims, user_id, body.model_dump(exclude_unset=True))


@router.put(
    "/{user_id}/password",
    response_model=MessageResponse,
    dependencies=[Depends(audited("update", "user_password"))],
)
def change_password(
    user_id: int,
    body: PasswordChangeRequest,
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_admin),
):
    """Set a user's password (admin only)."""
    auth_service.set_password(db, user_id, body.new_password)
    return MessageResponse(message="Password updated successfully")


@router.get("/{user_id}/permissions")
async def get_permissions(
    user_id: int,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Resolved section map for a user (self or admin)."""
    if claims.id != user_id and not claims.is_admin:
        raise Forbidden()
    user = auth_service.get_user(db, user_id)
    return section_service.resolve(db, user)


@router.put(
    "/{user_id}/permissions",
    dependencies=[Depends(audited("update", "user_permissions"))],
)
async def set_permissions(
    user_id: int,
    body: SectionOverridesRequest,
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_admin),
):
    """Replace a user's section overrides (admin only; no-op for admins)."""
    user = auth_service.get_user(db, user_id)
    return section_service.set_overrides(db, user, body.permissions)
