"""Branches API router."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from crm_access.db.session import get_db
from crm_access.schemas.schemas import BranchCreate, BranchUpdate, BranchOut, MessageResponse
from crm_access.services.branch_service import branch_service
from crm_access.core.audit import AuditRoute, audited
from crm_access.core.permissions import require_admin
from crm_access.core.security import Claims, get_current_claims

router = APIRouter(prefix="/branches", tags=["branches"], route_class=AuditRoute)


@router.get("/", response_model=List[BranchOut])
async def list_branches(
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """List branches with active member counts."""
    return [
        BranchOut.model_validate(item["branch"]).model_copy(update={"user_count": item["user_count"]})
        for item in branch_service.list_branches(db)
    ]


@router.get("/{branch_id}", response_model=BranchOut)
async def get_branch(
    branch_id: int,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    return branch_service.get(db, branch_id)


@router.post(
    "/",
    response_model=BranchOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audited("create", "branch"))],
)
async def create_branch(
    body: BranchCreate,
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_admin),
):
    """Create a branch (admin only)."""
    fields = body.model_dump(exclude={"name"})
    return branch_service.create(db, body.name, **fields)


@router.put(
    "/{branch_id}",
    response_model=BranchOut,
    dependencies=[Depends(audited("update", "branch"))],
)
async def update_branch(
    branch_id: int,
    body: BranchUpdate,
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_admin),
):
    """Update a branch (admin only)."""
    return branch_service.update(db, branch_id, **body.model_dump(exclude_unset=True))


@router.delete(
    "/{branch_id}",
    response_model=MessageResponse,
    dependencies=[Depends(audited("delete", "branch"))],
)
async def delete_branch(
    branch_id: int,
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_admin),
):
    """Delete a branch nobody is assigned to (admin only)."""
    branch_service.delete(db, branch_id)
    return MessageResponse(message="Branch deleted successfully")
