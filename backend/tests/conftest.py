import os

# Must be set before taskpoints.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import pytest
from sqlalchemy.orm import sessionmaker
from taskpoints.core.database import Base, build_engine
from taskpoints.models.task import Task  # noqa: F401
from taskpoints.models.user import User


@pytest.fixture
def engine():
    # Fresh in-memory database per test
    test_engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """Insert a user directly, skipping password hashing"""
    def _make_user(username: str, points: int = 0, referrer_id=None) -> User:
        user = User(
            username=username,
            password_hash="not-a-real-hash",
            points=points,
            referrer_id=referrer_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user
