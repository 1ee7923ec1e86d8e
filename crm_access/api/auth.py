"""Auth API router: login, me, logout, forgot/reset password."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm_access.db.session import get_db
from crm_access.schemas.schemas import (
    LoginRequest, TokenResponse, UserProfile, MessageResponse,
    ForgotPasswordRequest, ResetPasswordRequest,
)
from crm_access.services.auth_service import auth_service, public_profile
from crm_access.services.section_service import section_service
from crm_access.core.exceptions import MailUnavailable
from crm_access.core.security import Claims, get_current_claims

logger = logging.getLogger("crm_access")

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate with email or display name and return a session token."""
    return auth_service.authenticate(db, body.identifier, body.password)


@router.get("/me", response_model=UserProfile)
async def get_me(
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Get current user profile with resolved section permissions."""
    user = auth_service.get_user(db, claims.id)
    profile = public_profile(user)
    profile["permissions"] = section_service.resolve(db, user)
    return profile


@router.post("/logout", response_model=MessageResponse)
async def logout(claims: Claims = Depends(get_current_claims)):
    """Tokens are not revocable; the client discards its copy."""
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(body: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Mail a reset link if the email is registered."""
    try:
        message = auth_service.request_password_reset(db, body.email)
    except MailUnavailable as e:
        # Configuration detail goes to the operator log, not the requester
        logger.error("Password reset could not be mailed: %s", e.message)
        raise MailUnavailable("Unable to send reset email. Please try again later.") from e
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Set a new password with a single-use reset token."""
    auth_service.redeem_password_reset(db, body.token, body.new_password)
    return MessageResponse(message="Password has been reset successfully. You can now log in.")
