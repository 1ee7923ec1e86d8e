"""Audit service: post-response audit writes and filtered queries."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session

from crm_access.core.config import settings
from crm_access.models.audit_log import AuditLog

logger = logging.getLogger("crm_access")


class AuditService:
    """Writes and reads the audit trail of successful mutations."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory

    def _open_session(self) -> Session:
        if self.session_factory is not None:
            return self.session_factory()
        from crm_access.db.session import SessionLocal
        return SessionLocal()

    @staticmethod
    def log(
        db: Session,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        changes: Optional[Any] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Append one entry and commit it on `db`.

        Args:
            action: verb such as "create", "update", "delete"
            entity_type: user, branch, user_permissions, or a feature entity
            changes: request payload, stored as JSON text
        """
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            changes=json.dumps(changes, default=str) if changes is not None else None,
            ip_address=ip_address,
            created_at=datetime.now(timezone.utc),
        )
        db.add(entry)
        db.commit()
        return entry

    def record(
        self,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        changes: Optional[Any] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """Fire-and-forget write on a dedicated session.

        Failures are logged and swallowed: audit never changes the outcome
        of the request it observes.
        """
        try:
            db = self._open_session()
        except Exception:
            logger.exception("Audit session unavailable; dropped %s %s", action, entity_type)
            return
        try:
            self.log(db, user_id, action, entity_type, entity_id, changes, ip_address)
        except Exception:
            db.rollback()
            logger.exception(
                "Failed to record audit entry: user=%s action=%s entity=%s/%s",
                user_id, action, entity_type, entity_id,
            )
        finally:
            db.close()

    @staticmethod
    def query_logs(
        db: Session,
        user_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        """Query audit logs, newest first, capped at `limit`."""
        query = db.query(AuditLog)

        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.filter(AuditLog.entity_id == str(entity_id))
        if start_date:
            query = query.filter(AuditLog.created_at >= start_date)
        if end_date:
            query = query.filter(AuditLog.created_at <= end_date)

        limit = min(limit or settings.AUDIT_DEFAULT_LIMIT, settings.AUDIT_MAX_LIMIT)
        return (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
            .all()
        )


audit_service = AuditService()


def record_audit(
    user_id: int,
    action: str,
    entity_type: str,
    entity_id: Optional[Any] = None,
    changes: Optional[Any] = None,
    ip_address: Optional[str] = None,
) -> None:
    """Module-level entry point for feature modules."""
    audit_service.record(user_id, action, entity_type, entity_id, changes, ip_address)
