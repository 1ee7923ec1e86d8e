"""Auth service: login, password reset, account management."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from crm_access.core.config import settings
from crm_access.core.exceptions import (
    AccountInactive,
    Forbidden,
    InvalidCredentials,
    InvalidOrExpiredToken,
    MailUnavailable,
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from crm_access.core.permissions import can_access_record, check_department_access, normalize_role
from crm_access.core.security import (
    Claims, create_access_token, hash_password, verify_password,
)
from crm_access.models.password_reset import PasswordResetToken
from crm_access.models.user import AccountStatus, Role, User
from crm_access.services.mail_service import mail_service
from crm_access.services.section_service import section_service

logger = logging.getLogger("crm_access")

RESET_REQUESTED_MESSAGE = (
    "If that email is registered, you will receive a password reset link shortly."
)

# Fields a non-admin may change on their own profile
SELF_EDITABLE_FIELDS = ("name", "department", "phone")
ADMIN_ONLY_FIELDS = ("role", "status", "branch_id")


def public_profile(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "department": user.department,
        "phone": user.phone,
        "avatar_url": user.avatar_url,
        "status": user.status,
        "branch_id": user.branch_id,
        "branch_name": user.branch_name,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
    }


class AuthService:
    """Handles authentication and account management."""

    @staticmethod
    def authenticate(db: Session, identifier: str, password: str) -> Dict[str, Any]:
        """Verify credentials and issue a session token.

        `identifier` is an email or a case-insensitive display name.

        Raises:
            InvalidCredentials: Unknown identifier or wrong password.
            AccountInactive: The account exists but is not active.
        """
        identifier = identifier.strip()
        user = (
            db.query(User)
            .filter(or_(User.email == identifier, func.lower(User.name) == identifier.lower()))
            .first()
        )
        if not user:
            raise InvalidCredentials()

        if not user.is_active:
            if settings.LOGIN_CONCEAL_INACTIVE:
                raise InvalidCredentials()
            raise AccountInactive()

        if not verify_password(password, user.hashed_password):
            raise InvalidCredentials()

        # Best effort: concurrent logins may overwrite each other
        user.last_login_at = datetime.now(timezone.utc)
        db.commit()

        role = normalize_role(user.role)
        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": role,
            "department": user.department,
            "branch_id": user.branch_id,
        }
        access_token = create_access_token(token_data)

        profile = public_profile(user)
        profile["role"] = role
        profile["permissions"] = section_service.resolve(db, user)

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": profile,
        }

    @staticmethod
    def request_password_reset(db: Session, email: str) -> str:
        """Start a password reset and return the caller-facing message.

        The message is the same whether or not the email is registered.

        Raises:
            MailUnavailable: The account exists but mail cannot be sent. A token
                whose mail was not delivered is removed again.
        """
        email = email.strip()
        user = db.query(User).filter(User.email == email).first()
        if not user:
            return RESET_REQUESTED_MESSAGE

        # Checked after the lookup, so this branch leaks account existence
        # when SMTP is unconfigured.
        if not mail_service.is_configured():
            raise MailUnavailable()

        token = secrets.token_hex(32)
        expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=settings.RESET_TOKEN_EXPIRY_MINUTES
        )
        row = PasswordResetToken(user_id=user.id, token=token, expires_at=expires_at)
        db.add(row)
        db.commit()

        reset_link = f"{settings.APP_URL.rstrip('/')}/reset-password?token={token}"
        minutes = settings.RESET_TOKEN_EXPIRY_MINUTES
        body = (
            f"Hi {user.name},\n\n"
            "You requested a password reset. Open the link below to reset your password:\n\n"
            f"{reset_link}\n\n"
            f"This link expires in {minutes} minutes. If you did not request this, "
            "you can ignore this email.\n"
        )
        html = (
            f"<p>Hi {user.name},</p>"
            "<p>You requested a password reset. Click the link below to reset your password:</p>"
            f'<p><a href="{reset_link}">Reset Password</a></p>'
            f"<p>This link expires in {minutes} minutes. If you did not request this, "
            "you can ignore this email.</p>"
        )
        try:
            mail_service.send(
                to=user.email,
                subject=f"{settings.SMTP_FROM_NAME} - Password Reset",
                body=body,
                html=html,
            )
        except MailUnavailable:
            # An undelivered token must not stay redeemable
            db.delete(row)
            db.commit()
            raise
        logger.info("Password reset link issued for user %s", user.id)
        return RESET_REQUESTED_MESSAGE

    @staticmethod
    def redeem_password_reset(db: Session, token: str, new_password: str) -> None:
        """Set a new password using a reset token, consuming the token.

        The token row is removed by a conditional delete in the same
        transaction as the password update; if another redemption already
        removed it, this one fails. Every other outstanding token for the
        account is dropped in the same commit.

        Raises:
            ValidationError: The new password is too short.
            InvalidOrExpiredToken: No unexpired token matches.
        """
        if not token or not new_password or len(new_password) < settings.PASSWORD_MIN_LENGTH:
            raise ValidationError(
                "Valid token and new password "
                f"(min {settings.PASSWORD_MIN_LENGTH} characters) are required"
            )

        now = datetime.now(timezone.utc)
        row = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.token == token, PasswordResetToken.expires_at > now)
            .first()
        )
        if not row:
            raise InvalidOrExpiredToken()
        user_id = row.user_id
        hashed = hash_password(new_password)

        consumed = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.id == row.id, PasswordResetToken.expires_at > now)
            .delete(synchronize_session=False)
        )
        if consumed != 1:
            db.rollback()
            raise InvalidOrExpiredToken()

        db.query(User).filter(User.id == user_id).update(
            {"hashed_password": hashed}, synchronize_session=False
        )
        # Any other outstanding links for this account die with the reset
        db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user_id).delete(
            synchronize_session=False
        )
        db.commit()
        logger.info("Password reset completed for user %s", user_id)

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password: str,
        name: str,
        role: Optional[str] = None,
        department: Optional[str] = None,
        phone: Optional[str] = None,
        branch_id: Optional[int] = None,
        created_by: Optional[int] = None,
    ) -> User:
        """Create a new active account."""
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            raise ResourceConflictError("User with this email already exists")

        role = normalize_role(role) or Role.staff.value
        if role not in Role.__members__:
            raise ValidationError(f"Unknown role '{role}'")

        user = User(
            email=email,
            hashed_password=hash_password(password),
            name=name,
            role=role,
            department=department,
            phone=phone,
            branch_id=branch_id,
            created_by=created_by,
            status=AccountStatus.active.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        return user

    @staticmethod
    def list_assignable(db: Session):
        """Active accounts as assignment targets, by name."""
        return (
            db.query(User)
            .filter(User.status == AccountStatus.active.value)
            .order_by(User.name)
            .all()
        )

    @staticmethod
    def list_users(db: Session, claims: Claims, department: Optional[str] = None):
        """List accounts; managers only see their own department."""
        check_department_access(claims, department)
        query = db.query(User)
        if normalize_role(claims.role) == "manager" and claims.department:
            query = query.filter(User.department == claims.department)
        if department:
            query = query.filter(User.department == department)
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    @staticmethod
    def update_user(db: Session, claims: Claims, user_id: int, changes: Dict[str, Any]) -> User:
        """Apply profile changes under the edit rules.

        Admins and managers may edit anyone; everybody may edit themselves,
        but non-admins only touch name, department and phone. Role, status
        and branch changes are admin-only and silently dropped otherwise.
        """
        role = normalize_role(claims.role)
        is_self = claims.id == user_id
        if not is_self and role not in ("admin", "manager"):
            raise Forbidden()

        user = AuthService.get_user(db, user_id)
        if not is_self and not can_access_record(claims, user):
            raise Forbidden()
        if is_self and role != "admin":
            changes = {k: v for k, v in changes.items() if k in SELF_EDITABLE_FIELDS}
        if role != "admin":
            changes = {k: v for k, v in changes.items() if k not in ADMIN_ONLY_FIELDS}

        if "role" in changes:
            new_role = normalize_role(changes["role"])
            if new_role not in Role.__members__:
                raise ValidationError(f"Unknown role '{changes['role']}'")
            changes["role"] = new_role
        if "status" in changes and changes["status"] not in AccountStatus.__members__:
            raise ValidationError(f"Unknown status '{changes['status']}'")

        for key, value in changes.items():
            setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_password(db: Session, user_id: int, new_password: str) -> None:
        """Admin-driven password change."""
        if len(new_password) < settings.PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
            )
        user = AuthService.get_user(db, user_id)
        user.hashed_password = hash_password(new_password)
        db.commit()

    @staticmethod
    def ensure_admin(db: Session, email: str, password: str, name: str) -> User:
        """Create the bootstrap admin, or reset its password if it exists."""
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.hashed_password = hash_password(password)
            db.commit()
            return user
        return AuthService.create_user(db, email, password, name, role=Role.admin.value)


auth_service = AuthService()
