"""Import all models so create_all can discover them."""

from crm_access.models.branch import Branch
from crm_access.models.user import User, Role, AccountStatus
from crm_access.models.section_permission import SectionPermission
from crm_access.models.password_reset import PasswordResetToken
from crm_access.models.audit_log import AuditLog

__all__ = [
    "Branch", "User", "Role", "AccountStatus",
    "SectionPermission", "PasswordResetToken", "AuditLog",
]
