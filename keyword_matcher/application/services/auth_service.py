"""Auth service — JWT token management, password hashing and profile updates."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from keyword_matcher.config import get_settings
from keyword_matcher.core.exceptions import AppError, ConflictException
from keyword_matcher.domain.models.user import User
from keyword_matcher.domain.schemas.auth import UserUpdate

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None


def token_for(user: User) -> str:
    # Subject is the id so a profile email change keeps the session valid
    return create_access_token(data={"sub": str(user.id), "role": user.role})


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        return None
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: str = "user",
    organization: str = None,
    job_title: str = None,
) -> User:
    user = User(
        name=name,
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role,
        organization=organization,
        job_title=job_title,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user: User, body: UserUpdate) -> User:
    data = body.model_dump(exclude_unset=True)
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
        other = get_user_by_email(db, data["email"])
        if other and other.id != user.id:
            raise ConflictException("Email already registered", details={"email": data["email"]})

    for field, value in data.items():
        if value is not None:
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise AppError("Current password is incorrect", status_code=400)
    user.password_hash = hash_password(new_password)
    db.commit()


def ensure_admin(db: Session, email: str, password: str) -> Optional[User]:
    """Create the configured admin account on first start."""
    if not email or not password:
        return None
    user = get_user_by_email(db, email)
    if user:
        return user
    return create_user(db, name="Administrator", email=email, password=password, role="admin")
