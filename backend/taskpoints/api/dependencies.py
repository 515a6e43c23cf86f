import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from taskpoints.core.database import get_db
from taskpoints.core.security import decode_access_token
from taskpoints.models.user import User
from taskpoints.services.user_service import user_service

# OAuth2 password bearer scheme - extracts token from Authorization header
# tokenUrl tells FastAPI where to find the login endpoint for Swagger UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token.

    The token's 'sub' claim holds the user's UUID. A missing, invalid or expired
    token, or a subject that no longer exists, raises 401 Unauthorized.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        raise credentials_exception

    user_id = decode_access_token(token)
    if user_id is None:
        raise credentials_exception

    user = user_service.get_user_by_id(db, user_id)
    if user is None:
        raise credentials_exception

    return user


def require_same_user(user_id: uuid.UUID, current_user: User) -> None:
    """Only the owner of an account may change its points or referrer"""
    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to modify another user"
        )
