"""Audit API router."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm_access.core.config import settings
from crm_access.db.session import get_db
from crm_access.schemas.schemas import AuditLogOut
from crm_access.services.audit_service import audit_service
from crm_access.core.permissions import require_audit_reader
from crm_access.core.security import Claims

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/", response_model=List[AuditLogOut])
async def get_audit_logs(
    user_id: Optional[int] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(settings.AUDIT_DEFAULT_LIMIT, ge=1, le=settings.AUDIT_MAX_LIMIT),
    db: Session = Depends(get_db),
    claims: Claims = Depends(require_audit_reader),
):
    """Query audit logs, newest first (requires audit:read)."""
    return audit_service.query_logs(
        db,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
