"""Directory API router for branch-scoped chat and email peers."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm_access.db.session import get_db
from crm_access.schemas.schemas import PeerOut
from crm_access.services.branch_service import branch_service
from crm_access.core.security import Claims, get_current_claims

router = APIRouter(prefix="/directory", tags=["directory"])


@router.get("/chat-peers", response_model=List[PeerOut])
async def chat_peers(
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Users available for direct messages (own branch; admins see all)."""
    return branch_service.chat_peers(db, claims.id)


@router.get("/email-recipients", response_model=List[PeerOut])
async def email_recipients(
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Recipients allowed by the sender's role, narrowed to the sender's branch."""
    return branch_service.email_recipients(db, claims.id)
