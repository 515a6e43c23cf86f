"""
Errors raised by the points services.

Each error carries the HTTP status the API reports it with, so route handlers
can let them propagate and a single exception handler renders the response.
"""


class PointsError(Exception):
    """Base class for all expected failures of a points operation."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(PointsError):
    """A user (or referrer) the operation depends on does not exist."""

    status_code = 404

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"{entity} not found")


class ConflictError(PointsError):
    """The operation would break a uniqueness rule, e.g. a second referrer."""

    status_code = 409


class InvalidInputError(PointsError):
    """Arguments rejected before touching the store."""

    status_code = 400


class InvalidCredentialsError(PointsError):
    status_code = 401

    def __init__(self, message: str = "Incorrect username or password"):
        super().__init__(message)


class StoreUnavailableError(PointsError):
    """
    Connectivity or transaction failure in the database.

    The message is deliberately generic; the underlying SQLAlchemy error is
    chained as __cause__ and logged, never sent to the client.
    """

    status_code = 503

    def __init__(self, message: str = "Database error occurred"):
        super().__init__(message)


class DeadlineExceededError(PointsError):
    """The caller's deadline passed before the transaction could commit."""

    status_code = 504

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Deadline exceeded during {stage}")
