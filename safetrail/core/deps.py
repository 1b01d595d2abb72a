"""FastAPI dependencies."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from safetrail.core.alert_policies import PRIVILEGED_ROLES
from safetrail.core.security import decode_access_token
from safetrail.db.session import get_db
from safetrail.models.user import User
from safetrail.services.auth_service import get_user_by_email

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Authenticated actor attached to every engine operation."""

    actor_id: int
    role: str

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(actor_id=user.id, role=user.role)


def get_current_user(
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User:
    """Require authenticated user. Raises 401 if not authenticated."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = get_user_by_email(db, claims.subject)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User is inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_principal(current_user: Annotated[User, Depends(get_current_user)]) -> Principal:
    """Principal (actor id + role) for the authenticated user."""
    return Principal.from_user(current_user)


def require_staff(principal: Annotated[Principal, Depends(get_principal)]) -> Principal:
    """Require an admin or government user."""
    if not principal.is_privileged:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


def require_tourist(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    """Require current user to be a tourist."""
    if current_user.role != "tourist":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only tourists can perform this action",
        )
    return current_user
