"""
Points transaction engine.

Both operations here are compound writes that must happen together or not at all:
  - complete_task: insert a Task row and add its points to the owner
  - add_referrer: link a user to a referrer and pay the referrer a bonus

Each runs inside a single transaction() block, so the existence/precondition checks
and the writes share one database transaction. A failure at any step, including a
missed deadline, rolls everything back.

The "at most one referrer" rule is enforced twice: the user and referrer rows are
locked with SELECT ... FOR UPDATE, in id order, before the check (PostgreSQL), and
the assignment itself is a compare-and-set UPDATE that only matches while
referrer_id IS NULL. Two concurrent add_referrer calls for one user therefore
produce one success and one ConflictError, and only one bonus is paid.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import DataError, SQLAlchemyError
from sqlalchemy.orm import Session
from taskpoints.core.config import settings
from taskpoints.core.database import transaction
from taskpoints.core.deadline import Deadline, is_statement_timeout
from taskpoints.core.exceptions import (
    ConflictError,
    DeadlineExceededError,
    InvalidInputError,
    NotFoundError,
    StoreUnavailableError,
)
from taskpoints.models.task import TASK_TYPE_MAX_LENGTH, Task
from taskpoints.models.user import POINTS_MAX, User

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _store_error(exc: SQLAlchemyError, operation: str) -> Exception:
    """Translate a database error into the error reported to the caller"""
    if is_statement_timeout(exc):
        logger.warning(f"{operation} cancelled by statement timeout")
        return DeadlineExceededError(operation)
    if isinstance(exc, DataError):
        # Out-of-range or oversized values that slipped past validation
        logger.warning(f"{operation} rejected by the database: {exc.orig}")
        return InvalidInputError("Value out of range")
    logger.error(f"{operation} failed: database error", exc_info=exc)
    return StoreUnavailableError()


class PointsService:
    def __init__(self, referral_bonus: Optional[int] = None):
        # None means "read the configured value at call time"
        self._referral_bonus = referral_bonus

    @property
    def referral_bonus(self) -> int:
        if self._referral_bonus is not None:
            return self._referral_bonus
        return settings.REFERRAL_BONUS_POINTS

    def complete_task(
        self,
        db: Session,
        user_id: uuid.UUID,
        task_type: str,
        points: int,
        timeout: Optional[float] = None,
    ) -> Task:
        """
        Record a completed task and credit its points to the user.

        Raises InvalidInputError for points outside 1..POINTS_MAX or an empty or
        oversized task type, NotFoundError if the user does not exist and
        ConflictError if the balance would overflow. The Task row and the balance
        increase are committed together.
        """
        # The API validates these as well; the engine does not depend on it
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise InvalidInputError("Points must be a positive integer")
        if points > POINTS_MAX:
            raise InvalidInputError(f"Points must not exceed {POINTS_MAX}")
        if not task_type or not task_type.strip():
            raise InvalidInputError("Task type is required")
        if len(task_type) > TASK_TYPE_MAX_LENGTH:
            raise InvalidInputError(f"Task type must be at most {TASK_TYPE_MAX_LENGTH} characters")

        deadline = Deadline(timeout)
        try:
            with transaction(db):
                deadline.apply(db)

                # Row lock serializes completions for one user so the overflow check holds
                balance = (
                    db.query(User.points)
                    .filter(User.id == user_id)
                    .with_for_update()
                    .first()
                )
                if balance is None:
                    logger.warning(f"Task completion rejected: user {user_id} not found")
                    raise NotFoundError("user")
                if balance.points + points > POINTS_MAX:
                    logger.warning(f"Task completion rejected: balance of user {user_id} would overflow")
                    raise ConflictError("Points balance would exceed the maximum")
                deadline.check("task insert")

                task = Task(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    task_type=task_type,
                    points=points,
                    completed_at=_now(),
                )
                db.add(task)
                db.flush()
                task_id = task.id
                deadline.check("balance update")

                # Increment in SQL so concurrent completions never lose an update
                db.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(points=User.points + points, updated_at=_now())
                    .execution_options(synchronize_session=False)
                )
                deadline.check("commit")
        except SQLAlchemyError as exc:
            raise _store_error(exc, "complete_task") from exc

        logger.info(f"User {user_id} completed task '{task_type}' (+{points} points, task {task_id})")
        return task

    def add_referrer(
        self,
        db: Session,
        user_id: uuid.UUID,
        referrer_id: uuid.UUID,
        timeout: Optional[float] = None,
    ) -> User:
        """
        Link user_id to referrer_id and credit the referral bonus to the referrer.

        Raises InvalidInputError for self-referral, NotFoundError("referrer") or
        NotFoundError("user") for missing rows and ConflictError when the user
        already has a referrer. Returns the re-read user row.
        """
        if user_id == referrer_id:
            raise InvalidInputError("User cannot refer themselves")

        bonus = self.referral_bonus
        deadline = Deadline(timeout)
        try:
            with transaction(db):
                deadline.apply(db)

                # Lock both rows, always in id order, so a concurrent assignment
                # waits for this one and A->B racing B->A cannot deadlock
                rows = (
                    db.query(User.id, User.referrer_id, User.points)
                    .filter(User.id.in_([user_id, referrer_id]))
                    .order_by(User.id)
                    .with_for_update()
                    .all()
                )
                found = {row.id: row for row in rows}
                if referrer_id not in found:
                    logger.warning(f"Referral rejected: referrer {referrer_id} not found")
                    raise NotFoundError("referrer")
                if user_id not in found:
                    logger.warning(f"Referral rejected: user {user_id} not found")
                    raise NotFoundError("user")
                if found[user_id].referrer_id is not None:
                    logger.warning(f"Referral rejected: user {user_id} already has a referrer")
                    raise ConflictError("User already has a referrer")
                if found[referrer_id].points + bonus > POINTS_MAX:
                    logger.warning(f"Referral rejected: balance of referrer {referrer_id} would overflow")
                    raise ConflictError("Referrer's points balance would exceed the maximum")
                deadline.check("referrer assignment")

                assigned = db.execute(
                    update(User)
                    .where(User.id == user_id, User.referrer_id.is_(None))
                    .values(referrer_id=referrer_id, updated_at=_now())
                    .execution_options(synchronize_session=False)
                )
                if assigned.rowcount != 1:
                    logger.warning(f"Referral rejected: user {user_id} was assigned a referrer concurrently")
                    raise ConflictError("User already has a referrer")
                deadline.check("referral bonus")

                db.execute(
                    update(User)
                    .where(User.id == referrer_id)
                    .values(points=User.points + bonus, updated_at=_now())
                    .execution_options(synchronize_session=False)
                )
                deadline.check("reload")

                user = (
                    db.query(User)
                    .filter(User.id == user_id)
                    .populate_existing()
                    .one()
                )
                deadline.check("commit")
        except SQLAlchemyError as exc:
            raise _store_error(exc, "add_referrer") from exc

        logger.info(f"User {user_id} referred by {referrer_id} (+{bonus} points to referrer)")
        return user


points_service = PointsService()
