import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session
from taskpoints.core.exceptions import DeadlineExceededError

# SQLSTATE PostgreSQL reports when statement_timeout cancels a query
QUERY_CANCELED_SQLSTATE = "57014"


class Deadline:
    """
    Cancellation signal for a single points operation.

    Built from a timeout in seconds (None means no deadline). The services call
    check() between the steps of a transaction; raising inside a transaction()
    block rolls every earlier step back.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._expires_at = None
        if timeout_seconds is not None:
            self._expires_at = time.monotonic() + timeout_seconds

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded"""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, stage: str) -> None:
        if self.expired():
            raise DeadlineExceededError(stage)

    def apply(self, db: Session) -> None:
        """
        Bound every statement of the current PostgreSQL transaction by the time left.

        A statement blocked on a row lock is cancelled by the server instead of
        waiting past the deadline. SET LOCAL ends with the transaction.
        """
        remaining = self.remaining()
        if remaining is None or db.get_bind().dialect.name != "postgresql":
            return
        self.check("start")
        timeout_ms = max(1, int(remaining * 1000))
        db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


def is_statement_timeout(exc: BaseException) -> bool:
    """True when a DBAPI error was caused by PostgreSQL cancelling the statement"""
    original = getattr(exc, "orig", None)
    return getattr(original, "pgcode", None) == QUERY_CANCELED_SQLSTATE
