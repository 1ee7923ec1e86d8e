"""Single-use password reset token model."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from crm_access.db.base import Base


class PasswordResetToken(Base):
    """Reset token mailed to the account owner; the row is deleted on redemption."""
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(255), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
