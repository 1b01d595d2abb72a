"""Account registration and token issuance."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from safetrail.core.config import settings
from safetrail.core.deps import get_current_user
from safetrail.core.security import create_access_token
from safetrail.db.session import get_db
from safetrail.models.user import User
from safetrail.schemas.auth import LoginRequest, RegisterRequest, StaffCreateRequest, TokenResponse, UserMe
from safetrail.services.auth_service import authenticate_user, create_staff_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserMe)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Create an account. Tourists then set up a profile via POST /tourists/me."""
    return register_user(db, data)


@router.post("/staff", response_model=UserMe, status_code=status.HTTP_201_CREATED)
def create_staff(
    data: StaffCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create an admin or government account. Admins only."""
    return create_staff_user(db, current_user, data)


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, data.email, data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return TokenResponse(
        access_token=create_access_token(user.email, user.role),
        role=user.role,
        expires_in=settings.jwt_expire_minutes * 60,
    )


@router.get("/me", response_model=UserMe)
def me(current_user: User = Depends(get_current_user)):
    return current_user
