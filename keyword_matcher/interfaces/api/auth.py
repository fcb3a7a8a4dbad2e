"""Auth API routes — login, register, profile."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from keyword_matcher.infrastructure.database import get_db
from keyword_matcher.application.services.auth_service import (
    authenticate_user,
    change_password,
    create_user,
    get_user_by_email,
    token_for,
    update_user,
)
from keyword_matcher.domain.schemas.auth import (
    LoginRequest,
    PasswordChange,
    TokenResponse,
    UserCreate,
    UserRead,
    UserUpdate,
)
from keyword_matcher.interfaces.api.deps import get_current_user
from keyword_matcher.domain.models.user import User

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, body.email, body.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    return TokenResponse(
        access_token=token_for(user),
        user=UserRead.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(body: UserCreate, db: Session = Depends(get_db)):
    existing = get_user_by_email(db, body.email)
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = create_user(
        db=db,
        name=body.name,
        email=body.email,
        password=body.password,
        organization=body.organization,
        job_title=body.job_title,
    )
    return TokenResponse(
        access_token=token_for(user),
        user=UserRead.model_validate(user),
    )


@router.get("/me", response_model=UserRead)
def get_me(user: User = Depends(get_current_user)):
    return UserRead.model_validate(user)


@router.put("/me", response_model=UserRead)
def update_me(
    body: UserUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return UserRead.model_validate(update_user(db, user, body))


@router.put("/password")
def update_password(
    body: PasswordChange,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    change_password(db, user, body.current_password, body.new_password)
    return {"message": "Password updated"}


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    return {"message": "Logged out"}
