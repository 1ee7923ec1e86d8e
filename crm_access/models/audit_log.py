"""Append-only audit log model."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from crm_access.db.base import Base


class AuditLog(Base):
    """Immutable audit trail for all successful mutations.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level).
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "create", "update"
    entity_type = Column(String(100), nullable=False, index=True)  # user, branch, organization, ...
    entity_id = Column(String(100), nullable=True, index=True)
    changes = Column(Text, nullable=True)  # JSON snapshot of the request payload
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    actor = relationship("User", lazy="joined")

    @property
    def user_name(self):
        return self.actor.name if self.actor else None

    @property
    def user_email(self):
        return self.actor.email if self.actor else None
