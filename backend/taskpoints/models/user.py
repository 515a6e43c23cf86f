import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, Index, Uuid
from sqlalchemy.sql import func
from taskpoints.core.database import Base

# Column limits; inputs are checked against these before they reach the database
USERNAME_MAX_LENGTH = 255
# points is a 32-bit INTEGER on PostgreSQL
POINTS_MAX = 2**31 - 1


class User(Base):
    """
    User model holding identity, point balance and the optional referrer link.

    points only ever grows: through completed tasks and referral bonuses.
    referrer_id is set at most once and never cleared; None means "no referrer".
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("points >= 0", name="non_negative_points"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(USERNAME_MAX_LENGTH), unique=True, nullable=False)
    # Column name kept as "passw" to match the existing schema; holds a bcrypt hash
    password_hash = Column("passw", String(255), nullable=False)
    points = Column(Integer, nullable=False, default=0, server_default="0")
    referrer_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    # Refreshed explicitly by every points/referrer update
    updated_at = Column(DateTime(timezone=True), nullable=False,
                        server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<User {self.username} points={self.points}>"


# Leaderboard reads users ordered by points, highest first
Index("idx_users_points", User.points.desc())
