"""Authentication and authorization.

Credential storage and login live with the identity provider; this module only
verifies the signed access tokens it issues and maps roles to permissions.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional
import logging
import time
from uuid import UUID
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from .config import settings
from .database import get_db
from .domain_errors import DomainError
from .models import User

logger = logging.getLogger(__name__)

# Bearer token scheme
security = HTTPBearer()


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity triple carried by an access token."""

    user_id: UUID
    company_id: UUID
    role: str


def _invalid_token(message: str = "Could not validate credentials") -> DomainError:
    return DomainError(code="AUTH_INVALID_TOKEN", http_status=401, message=message)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    now = int(time.time())
    if expires_delta:
        exp = now + int(expires_delta.total_seconds())
    else:
        exp = now + int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60
    to_encode.update({"exp": exp, "iat": now, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def create_user_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Issue an access token for a user (seeding and tests)."""
    return create_access_token(
        {"sub": str(user.id), "companyId": str(user.company_id), "role": user.role},
        expires_delta=expires_delta,
    )


def decode_token(token: str) -> dict:
    """Decode JWT token, applying expiry with leeway."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        raise _invalid_token()

    now = int(time.time())
    try:
        exp_int = int(payload["exp"])
    except (KeyError, TypeError, ValueError):
        raise _invalid_token()
    if now > exp_int + int(settings.JWT_LEEWAY_SECONDS):
        raise DomainError(code="AUTH_TOKEN_EXPIRED", http_status=401, message="Token expired")

    iat = payload.get("iat")
    if iat is not None:
        try:
            iat_int = int(iat)
        except (TypeError, ValueError):
            raise _invalid_token()
        # Reject tokens issued far in the future (clock skew / malicious tokens).
        if iat_int > now + int(settings.JWT_LEEWAY_SECONDS):
            raise _invalid_token()
    return payload


def read_token_claims(token: Optional[str]) -> TokenClaims:
    """Verify an access token and return its identity claims."""
    if not token:
        raise _invalid_token("No token provided")
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise _invalid_token("Invalid token type")
    try:
        user_id = UUID(str(payload["sub"]))
        company_id = UUID(str(payload["companyId"]))
    except (KeyError, ValueError):
        raise _invalid_token()
    role = payload.get("role")
    if role not in ROLE_PERMISSIONS:
        raise _invalid_token()
    return TokenClaims(user_id=user_id, company_id=company_id, role=role)


def _load_active_user(db: Session, claims: TokenClaims) -> User:
    user = db.query(User).filter(
        User.id == claims.user_id,
        User.company_id == claims.company_id,
        User.is_active == True,  # noqa: E712
    ).first()
    if user is None:
        raise DomainError(
            code="AUTH_USER_INACTIVE",
            http_status=401,
            message="User not found or inactive",
        )
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user."""
    return _load_active_user(db, read_token_claims(credentials.credentials))


def active_user_token_verifier(session_factory: Callable[[], Session]) -> Callable[[Optional[str]], TokenClaims]:
    """Token check for the push channel: same rules as ``get_current_user``."""

    def verify(token: Optional[str]) -> TokenClaims:
        claims = read_token_claims(token)
        db = session_factory()
        try:
            _load_active_user(db, claims)
        finally:
            db.close()
        return claims

    return verify


# Permission checks
class PermissionChecker:
    """Check user permissions based on role."""

    def __init__(self, required_permission: str):
        self.required_permission = required_permission

    def __call__(self, current_user: User = Depends(get_current_user)):
        """Check if user has required permission."""
        if not check_permission(current_user, self.required_permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {self.required_permission} required"
            )
        return current_user


# Role permissions matrix
ROLE_PERMISSIONS = {
    "admin": {
        "canViewAllTasks": True,
        "canCreateTasks": True,
        "canManageTasks": True,
        "canDeleteTasks": True,
        "canViewAdminDashboard": True,
        "canViewDirectory": True,
    },
    "member": {
        "canViewAllTasks": False,
        "canCreateTasks": False,
        "canManageTasks": False,
        "canDeleteTasks": False,
        "canViewAdminDashboard": False,
        "canViewDirectory": True,
    },
}


def check_permission(user: User, permission: str) -> bool:
    """Check if user has specific permission."""
    permissions = ROLE_PERMISSIONS.get(user.role, {})
    return permissions.get(permission, False)
