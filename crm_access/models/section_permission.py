"""Per-user section override model."""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from crm_access.db.base import Base


class SectionPermission(Base):
    """Explicit (user, section) visibility override.

    A missing row means the section is allowed.
    """
    __tablename__ = "user_permissions"
    __table_args__ = (UniqueConstraint("user_id", "section", name="uq_user_section"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    section = Column(String(100), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="section_permissions")
