"""Branch model."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func
from sqlalchemy.orm import relationship
from crm_access.db.base import Base


class Branch(Base):
    """Organizational partition scoping which accounts can see each other.

    Deleting a branch is refused while any account references it; there is
    no cascade.
    """
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    phone = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False, default="active")
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    members = relationship("User", back_populates="branch", lazy="select")
