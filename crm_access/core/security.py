"""Password hashing, JWT session tokens, and the authentication dependency."""

import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from pydantic import BaseModel

from crm_access.core.config import settings
from crm_access.core.exceptions import Unauthenticated

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


class Claims(BaseModel):
    """Verified session token payload, as of issuance time.

    role, department and branch_id are a snapshot: edits made after the
    token was issued are not visible until the holder logs in again.
    """

    id: int
    email: str
    name: Optional[str] = None
    role: str
    department: Optional[str] = None
    branch_id: Optional[int] = None
    exp: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash. Malformed hashes never verify."""
    pwd_bytes = plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pwd_bytes, hashed_password.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed session token."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid or expired token")


def authenticate(token: Optional[str]) -> Claims:
    """Verify a session token and return its claims.

    Purely cryptographic: the database is never consulted.
    """
    if not token:
        raise Unauthenticated("No token provided")
    payload = decode_token(token)
    sub = payload.get("sub")
    if sub is None or not payload.get("role"):
        raise Unauthenticated("Invalid token payload")
    try:
        return Claims(
            id=int(sub),
            email=payload.get("email", ""),
            name=payload.get("name"),
            role=payload["role"],
            department=payload.get("department"),
            branch_id=payload.get("branch_id"),
            exp=payload.get("exp"),
        )
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token payload")


async def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Claims:
    """Extract and verify the Bearer token; attach the claims to the request."""
    claims = authenticate(credentials.credentials if credentials else None)
    request.state.claims = claims
    return claims
