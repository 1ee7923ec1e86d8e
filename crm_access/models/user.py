"""User (account) model."""

import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from crm_access.db.base import Base


class Role(str, enum.Enum):
    admin = "admin"
    executive = "executive"
    manager = "manager"
    staff = "staff"
    guest = "guest"


class AccountStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class User(Base):
    """CRM account. Never hard-deleted; deactivate by flipping status."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default=Role.staff.value)
    department = Column(String(100), nullable=True)  # only used for manager-scoped reads
    phone = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    status = Column(String(50), nullable=False, default=AccountStatus.active.value)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True, index=True)
    last_login_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    branch = relationship("Branch", back_populates="members", lazy="joined")
    section_permissions = relationship(
        "SectionPermission",
        back_populates="user",
        lazy="selectin",
    )

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.active.value

    @property
    def branch_name(self):
        return self.branch.name if self.branch else None
