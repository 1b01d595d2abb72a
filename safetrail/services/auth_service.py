"""Auth service.

Self-registration only ever creates tourist accounts. Staff (admin and
government) accounts are created by an admin, or seeded at startup from the
bootstrap admin settings.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from safetrail.core.alert_policies import PRIVILEGED_ROLES
from safetrail.core.config import settings
from safetrail.core.errors import ForbiddenError, ValidationFailedError
from safetrail.core.security import hash_password, verify_password
from safetrail.models.user import User
from safetrail.schemas.auth import RegisterRequest, StaffCreateRequest

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email."""
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def create_user(db: Session, *, email: str, password: str, full_name: str, role: str) -> User:
    """Insert an account with any role. Callers enforce who may create what."""
    if get_user_by_email(db, email) is not None:
        raise ValidationFailedError("Email already registered", email=email)
    user = User(
        email=email,
        hashed_password=hash_password(password),
        full_name=full_name,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def register_user(db: Session, data: RegisterRequest) -> User:
    """Public sign-up; emails are unique across roles."""
    if data.role != "tourist":
        raise ForbiddenError(
            "Staff accounts cannot be self-registered",
            error_code="STAFF_SIGNUP_FORBIDDEN",
            role=data.role,
        )
    return create_user(db, email=data.email, password=data.password, full_name=data.full_name, role="tourist")


def create_staff_user(db: Session, creator: User, data: StaffCreateRequest) -> User:
    """Admin-only creation of admin and government accounts."""
    if creator.role != "admin":
        raise ForbiddenError("Only admins can create staff accounts")
    user = create_user(db, email=data.email, password=data.password, full_name=data.full_name, role=data.role)
    logger.info("Staff account %s (%s) created by user %s", user.id, user.role, creator.id)
    return user


def ensure_bootstrap_admin(db: Session) -> User | None:
    """Seed the configured admin account if it does not exist yet."""
    email, password = settings.bootstrap_admin_email, settings.bootstrap_admin_password
    if not email or not password:
        return None
    user = get_user_by_email(db, email)
    if user is not None:
        return user
    user = create_user(db, email=email, password=password, full_name="Administrator", role="admin")
    logger.info("Bootstrap admin %s created", email)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Authenticate user by email and password."""
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


def list_staff_user_ids(db: Session) -> list[int]:
    """Ids of active admin/government users, used as escalation targets."""
    result = db.execute(
        select(User.id)
        .where(User.role.in_(sorted(PRIVILEGED_ROLES)), User.is_active.is_(True))
        .order_by(User.id)
    )
    return list(result.scalars().all())
