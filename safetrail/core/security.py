"""Password hashing and JWT utilities."""

from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from jose import JWTError, jwt

from safetrail.core.clock import utcnow
from safetrail.core.config import settings


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an access token."""

    subject: str  # user email
    role: str


def hash_password(password: str) -> str:
    """Hash a plain password."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a plain password against a hash."""
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def create_access_token(email: str, role: str) -> str:
    """Signed token for a user; role is informational, the user row stays authoritative."""
    now = utcnow()
    payload = {
        "sub": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims | None:
    """Verify signature and expiry. Returns None for any invalid token."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return TokenClaims(subject=payload["sub"], role=payload.get("role", ""))
