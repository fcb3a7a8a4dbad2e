"""Bearer-token authentication dependencies."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from keyword_matcher.application.services.auth_service import decode_access_token
from keyword_matcher.domain.models.user import User
from keyword_matcher.infrastructure.database import get_db

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the active user from the token subject (the user id)."""
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    subject = str(payload.get("sub") or "")
    if not subject.isdigit():
        raise _unauthorized("Invalid token")

    user = db.get(User, int(subject))
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user
