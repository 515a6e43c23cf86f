import logging
import uuid
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from taskpoints.core.database import transaction
from taskpoints.core.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    InvalidInputError,
    StoreUnavailableError,
)
from taskpoints.core.security import get_password_hash, verify_password
from taskpoints.models.user import USERNAME_MAX_LENGTH, User

logger = logging.getLogger(__name__)

USERNAME_TAKEN_MESSAGE = "Username already registered"


class UserService:
    """Read-side lookups over the users table plus account registration"""

    @staticmethod
    def get_user_by_id(db: Session, user_id: uuid.UUID) -> Optional[User]:
        """Return the user, or None when no row has this id (not an error)"""
        try:
            return db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to load user {user_id}", exc_info=exc)
            raise StoreUnavailableError() from exc

    @staticmethod
    def get_leaderboard(db: Session, limit: int) -> List[User]:
        """
        Users ordered by points, highest first, at most `limit` of them.

        Ties keep the database's natural row order. The limit has already been
        normalized by the caller.
        """
        if limit <= 0:
            raise InvalidInputError("Limit must be positive")
        try:
            return (
                db.query(User)
                .order_by(User.points.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error(f"Failed to query leaderboard (limit={limit})", exc_info=exc)
            raise StoreUnavailableError() from exc

    @staticmethod
    def register_user(db: Session, username: str, password: str) -> User:
        """Create a user with zero points and no referrer"""
        username = (username or "").strip()
        if not username:
            raise InvalidInputError("Username is required")
        if len(username) > USERNAME_MAX_LENGTH:
            raise InvalidInputError(f"Username must be at most {USERNAME_MAX_LENGTH} characters")
        if not password:
            raise InvalidInputError("Password is required")

        try:
            with transaction(db):
                # Explicit check gives a clear error; the unique constraint below
                # still catches two registrations racing for the same name
                existing = db.query(User.id).filter(User.username == username).first()
                if existing:
                    raise ConflictError(USERNAME_TAKEN_MESSAGE)

                user = User(
                    username=username,
                    password_hash=get_password_hash(password),
                    points=0,
                )
                db.add(user)

            # Refresh to load server-generated timestamps
            db.refresh(user)
        except IntegrityError as exc:
            raise ConflictError(USERNAME_TAKEN_MESSAGE) from exc
        except SQLAlchemyError as exc:
            logger.error(f"Failed to register user '{username}'", exc_info=exc)
            raise StoreUnavailableError() from exc

        logger.info(f"Registered user '{username}' ({user.id})")
        return user

    @staticmethod
    def authenticate_user(db: Session, username: str, password: str) -> User:
        """Return the user if the password matches, otherwise InvalidCredentialsError"""
        try:
            user = db.query(User).filter(User.username == (username or "").strip()).first()
        except SQLAlchemyError as exc:
            logger.error("Failed to load user for login", exc_info=exc)
            raise StoreUnavailableError() from exc

        # Same error for unknown user and wrong password - prevents username enumeration
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        return user


user_service = UserService()
