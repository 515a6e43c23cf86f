import uuid

import pytest
from sqlalchemy.exc import OperationalError
from taskpoints.core.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    InvalidInputError,
    StoreUnavailableError,
)
from taskpoints.core.security import verify_password
from taskpoints.services.user_service import user_service


def test_leaderboard_returns_top_users_in_descending_order(db, make_user):
    for name, points in [("a", 50), ("b", 10), ("c", 30), ("d", 40)]:
        make_user(name, points=points)

    leaders = user_service.get_leaderboard(db, 3)

    assert [u.points for u in leaders] == [50, 40, 30]
    assert [u.username for u in leaders] == ["a", "d", "c"]


def test_leaderboard_limit_larger_than_table(db, make_user):
    make_user("solo", points=1)

    assert len(user_service.get_leaderboard(db, 10)) == 1


def test_leaderboard_rejects_non_positive_limit(db):
    with pytest.raises(InvalidInputError):
        user_service.get_leaderboard(db, 0)


def test_get_user_by_id_returns_none_when_missing(db):
    assert user_service.get_user_by_id(db, uuid.uuid4()) is None


def test_get_user_by_id(db, make_user):
    user = make_user("alice", points=3)

    found = user_service.get_user_by_id(db, user.id)

    assert found.username == "alice"
    assert found.points == 3
    assert found.referrer_id is None


def test_register_hashes_password_and_starts_at_zero(db):
    user = user_service.register_user(db, "  alice ", "s3cret")

    assert user.username == "alice"
    assert user.points == 0
    assert user.referrer_id is None
    assert user.password_hash != "s3cret"
    assert verify_password("s3cret", user.password_hash)
    assert user.created_at is not None


def test_register_duplicate_username_conflicts(db):
    user_service.register_user(db, "alice", "one")

    with pytest.raises(ConflictError):
        user_service.register_user(db, "alice", "two")


@pytest.mark.parametrize("username,password", [("", "pw"), ("   ", "pw"), ("alice", "")])
def test_register_requires_username_and_password(db, username, password):
    with pytest.raises(InvalidInputError):
        user_service.register_user(db, username, password)


def test_authenticate_user(db):
    registered = user_service.register_user(db, "alice", "s3cret")

    assert user_service.authenticate_user(db, "alice", "s3cret").id == registered.id

    with pytest.raises(InvalidCredentialsError):
        user_service.authenticate_user(db, "alice", "wrong")
    with pytest.raises(InvalidCredentialsError):
        user_service.authenticate_user(db, "nobody", "s3cret")


def test_register_rejects_username_longer_than_column(db):
    with pytest.raises(InvalidInputError):
        user_service.register_user(db, "u" * 256, "pw")


def test_register_accepts_username_at_column_limit(db):
    assert user_service.register_user(db, "u" * 255, "pw").username == "u" * 255


def test_register_reload_failure_is_store_error(db, monkeypatch):
    def refresh(instance, *args, **kwargs):
        raise OperationalError("SELECT users", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "refresh", refresh)

    with pytest.raises(StoreUnavailableError) as exc_info:
        user_service.register_user(db, "alice", "pw")

    assert exc_info.value.message == "Database error occurred"
    assert isinstance(exc_info.value.__cause__, OperationalError)
