"""
Authentication Service
JWT-based authentication and role enforcement for hospital staff
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

import bcrypt
from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from clinical_support.config import settings
from clinical_support.database.connection import get_db
from clinical_support.database.models import User, UserRole
from clinical_support.exceptions import ForbiddenError


# Security
security = HTTPBearer(auto_error=False)

ALERT_VIEWER_ROLES = (UserRole.DOCTOR, UserRole.NURSE, UserRole.ADMIN)
PRESCRIBER_ROLES = (UserRole.DOCTOR, UserRole.ADMIN)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, passed explicitly into every service call"""
    user_id: int
    username: str
    role: UserRole

    @classmethod
    def from_user(cls, user: User) -> "AuthContext":
        return cls(user_id=user.id, username=user.username, role=user.role)


def require_roles(ctx: Optional[AuthContext], *allowed_roles: UserRole) -> AuthContext:
    """
    Server-side role guard. Called first in every guarded service method,
    before any data is read or written.
    """
    if ctx is None or ctx.role not in allowed_roles:
        raise ForbiddenError(
            f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
        )
    return ctx


class AuthService:
    """Authentication service"""

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt directly"""
        password_bytes = password.encode('utf-8')
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password_bytes, salt)
        return hashed.decode('utf-8')

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against hash"""
        try:
            return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
        except ValueError:
            return False

    def create_access_token(self, data: dict, expires_delta: timedelta = None) -> str:
        """Create a JWT access token"""
        to_encode = data.copy()
        expire = datetime.utcnow() + (
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Decode and validate a JWT token"""
        try:
            return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        except JWTError:
            return None

    def authenticate_user(self, db: Session, username: str, password: str) -> Optional[User]:
        """Authenticate a user by username and password"""
        user = db.query(User).filter(User.username == username).first()

        if not user or not user.is_active:
            return None

        if not self.verify_password(password, user.password_hash):
            return None

        user.last_login = datetime.utcnow()
        db.commit()

        return user

    def resolve_context(self, db: Session, token: str) -> AuthContext:
        """Turn a bearer token into the caller's AuthContext"""
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        payload = self.decode_token(token)
        if payload is None or payload.get("sub") is None:
            raise credentials_exception

        user = db.query(User).filter(User.username == payload["sub"]).first()
        if user is None or not user.is_active:
            raise credentials_exception

        return AuthContext.from_user(user)


# Global auth service instance
auth_service = AuthService()


def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> AuthContext:
    """FastAPI dependency resolving the authenticated caller"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_service.resolve_context(db, credentials.credentials)
